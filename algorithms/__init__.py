from .math_tools import MathTools

__all__ = ["MathTools"]
