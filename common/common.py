import numbers
import sys
import warnings

import common.flags as FLAG


class ConfigurationError(ValueError):
    '''
    Invalid topology, traffic plan or scenario input. Raised before the run
    starts, never after.
    '''


class EmptyReportError(RuntimeError):
    '''
    No flow was observed by the end of the run.
    '''


class MeasurementAnomaly(UserWarning):
    '''
    A flow sample reported more packets received than sent, or a last
    reception earlier than the first transmission.
    '''


class DivisionGuardTriggered(UserWarning):
    '''
    A ratio or throughput hit a zero denominator and was replaced by its
    sentinel value.
    '''


def PRINTV(verbose, logstr):
    '''
    Print helper with verbosity control.
    '''
    if FLAG.VERBOSE >= verbose:
        print(logstr, flush=True)


def PRINTE(logstr):
    '''
    Prints an error line to stderr regardless of verbosity.
    '''
    print(f'[ERROR] {logstr}', file=sys.stderr, flush=True)


def WARN(category, logstr):
    '''
    Emits a recoverable condition both as a diagnostic line and as a Python
    warning of the given category.
    '''
    PRINTV(2, f'[WARN] {logstr}')
    warnings.warn(logstr, category, stacklevel=3)


def isInt(value):
    '''
    True if `value` is an integer, NumPy integers included. Bools are not
    accepted as integers.
    '''
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def isNumber(value):
    '''
    True if `value` is a real number other than a bool.
    '''
    return isinstance(value, numbers.Real) and not isinstance(value, bool)
