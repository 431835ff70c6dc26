"""soilheat simulates one-dimensional heat conduction in layered soil, including freezing and thawing of soil water and melt of an overlying snowpack."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("soilheat")
except PackageNotFoundError:
    __version__ = "0.0.0"

if __debug__:
    import numba

    # By default, instead of causing an IndexError, accessing an out-of-bound index
    # of an array in a Numba-compiled function will return invalid values or lead
    # to an access violation error (it's reading from invalid memory locations).
    # Setting BOUNDSCHECK to 1 will enable bounds checking for all array accesses
    numba.config.BOUNDSCHECK = 1
