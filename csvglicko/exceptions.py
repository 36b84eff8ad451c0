class CsvGlickoError(Exception):
    """Base exception for the csvglicko tool."""
    pass


class ConfigurationError(CsvGlickoError):
    """Raised for invalid Glicko-2 configuration or settings."""
    pass


class InvalidRatingError(CsvGlickoError, ValueError):
    """Raised when a rating state has a non-positive deviation or volatility."""
    pass


class VolatilityConvergenceError(CsvGlickoError, ArithmeticError):
    """Raised when the volatility solver exhausts its iteration bound."""
    def __init__(self, message, stage=None, iterations=None):
        super().__init__(message)
        self.stage = stage
        self.iterations = iterations


class GameRecordError(CsvGlickoError, ValueError):
    """Raised for a malformed game record in the input file."""
    def __init__(self, message, line=None):
        super().__init__(message)
        self.line = line
