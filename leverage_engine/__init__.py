from .models import LeverageIntent, LeverageSolution, SwapQuote
from .quotes import ONE_INCH, OneInchQuoteClient, SwapQuoteProbe
from .solver import LeverageSolver, min_return, solve_debt_change, swap_amount

__all__ = [
    "LeverageIntent",
    "LeverageSolution",
    "LeverageSolver",
    "ONE_INCH",
    "OneInchQuoteClient",
    "SwapQuote",
    "SwapQuoteProbe",
    "min_return",
    "solve_debt_change",
    "swap_amount",
]
