"""Display formatting for population figures and name frequencies."""

THOUSANDS_SEPARATOR = "."
POPULATION_SUFFIX = "habitantes"


def format_grouped(value: int, separator: str = THOUSANDS_SEPARATOR) -> str:
    """Group the digits of an integer in thousands.

    Args:
        value: Integer to format.
        separator: Group separator, ``.`` for pt-BR.

    Returns:
        The grouped number, e.g. ``1.234.567``.
    """
    return f"{value:,}".replace(",", separator)


def format_population(population: str) -> str:
    """Format a population digit string for display.

    Args:
        population: Decimal digits as returned by the statistics service.

    Returns:
        ``"1.234.567 habitantes"``, or the input unchanged when it is not
        an integer.
    """
    try:
        number = int(population)
    except ValueError:
        return population
    return f"{format_grouped(number)} {POPULATION_SUFFIX}"
