"""
Engineering notation with SI prefixes.

Examples
--------
>>> format_engineering(0.0012)
'1.200m'
>>> format_engineering(-4.7e-9)
'-4.700n'
>>> format_engineering(1e30)
'1.000e30'
"""

import math

SI_PREFIXES = {
    -24: 'y',
    -21: 'z',
    -18: 'a',
    -15: 'f',
    -12: 'p',
    -9: 'n',
    -6: 'µ',
    -3: 'm',
    0: '',
    3: 'k',
    6: 'M',
    9: 'G',
    12: 'T',
    15: 'P',
    18: 'E',
    21: 'Z',
    24: 'Y',
}


def format_engineering(value: float, precision: int = 3) -> str:
    """
    Format a number as mantissa in [1, 1000) plus an SI prefix.

    Parameters
    ----------
    value : float
        Number to format
    precision : int
        Digits after the decimal point of the mantissa

    Returns
    -------
    str
        e.g. '12.500µ' for 1.25e-5; exponents outside the prefix table
        are written as 'e<exp>'. Zero is written as '0', NaN and infinity
        as Python prints them.
    """
    value = float(value)
    if value == 0.0:
        return '0'
    if not math.isfinite(value):
        return str(value)

    exp = int(math.floor(math.log10(abs(value)) / 3)) * 3
    mantissa = value / 10.0 ** exp
    # Rounding can carry the mantissa to 1000.000
    if round(abs(mantissa), precision) >= 1000.0:
        exp += 3
        mantissa = value / 10.0 ** exp

    prefix = SI_PREFIXES.get(exp, f"e{exp}")
    return f"{mantissa:.{precision}f}{prefix}"


def format_quantity(value: float, unit: str, precision: int = 3) -> str:
    """Engineering notation followed by a unit symbol, e.g. '1.200mA'."""
    return f"{format_engineering(value, precision)}{unit}"


__all__ = ['format_engineering', 'format_quantity', 'SI_PREFIXES']
