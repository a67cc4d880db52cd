from .backtest_pairs import BacktestConfig, BacktestResult, run_backtest
from .walk_forward import OptimizedParams, build_price_data, optimize_parameters
from .reversion_probability import (
    ReversionModelOptions,
    apply_probability_scoring,
    build_reversion_model,
)

# Expose key entry points for easy import
__all__ = [
    'BacktestConfig', 'BacktestResult', 'run_backtest',
    'OptimizedParams', 'build_price_data', 'optimize_parameters',
    'ReversionModelOptions', 'apply_probability_scoring', 'build_reversion_model',
]
