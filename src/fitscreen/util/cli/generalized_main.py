import sys
import inspect
import argparse


def build_parser(fcn,
                 manual_arg_types=None,
                 manual_arg_nargs=None,
                 skip_args=None):
    """
    Construct an argument parser from the signature of `fcn`.

    Arguments without defaults become positional. Arguments with defaults
    become `--flags` typed by their default; boolean defaults become
    switches. Arguments defaulting to None are parsed as strings unless
    `manual_arg_types` says otherwise.

    Parameters
    ----------
    fcn : callable
        Function whose signature defines the command line.
    manual_arg_types : dict, optional
        Map of argument name to type, overriding the inferred type.
    manual_arg_nargs : dict, optional
        Map of argument name to argparse `nargs`.
    skip_args : list of str, optional
        Arguments that cannot be expressed on the command line (e.g. dicts
        of model keywords). They are left at their function defaults.

    Returns
    -------
    argparse.ArgumentParser
    """

    if manual_arg_types is None:
        manual_arg_types = {}
    if manual_arg_nargs is None:
        manual_arg_nargs = {}
    if skip_args is None:
        skip_args = []

    parser = argparse.ArgumentParser(prog=fcn.__name__,
                                     description=fcn.__doc__,
                                     formatter_class=argparse.RawTextHelpFormatter)

    param = inspect.signature(fcn).parameters
    for p in param:

        if p in skip_args:
            continue

        default = param[p].default
        required = default is param[p].empty

        if required:
            arg_type = None
        elif default is None:
            arg_type = str
        else:
            arg_type = type(default)

        if p in manual_arg_types:
            arg_type = manual_arg_types[p]

        nargs = manual_arg_nargs.get(p, None)

        if required:
            parser.add_argument(p, type=arg_type, nargs=nargs)
            continue

        arg_name = f"--{p}"
        if arg_type is bool:
            if default is True:
                parser.add_argument(arg_name, action="store_false")
            else:
                parser.add_argument(arg_name, action="store_true")
        else:
            parser.add_argument(arg_name, type=arg_type, default=default, nargs=nargs)

    return parser


def generalized_main(fcn,
                     argv=None,
                     manual_arg_types=None,
                     manual_arg_nargs=None,
                     skip_args=None):
    """
    Parse command line arguments for `fcn` (see `build_parser`) and call it.

    Parameters
    ----------
    fcn : callable
        Function to run.
    argv : list of str, optional
        Arguments to parse. If None, use sys.argv[1:].
    manual_arg_types, manual_arg_nargs, skip_args
        Passed to `build_parser`.

    Returns
    -------
    Any
        Whatever `fcn` returns.
    """

    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser(fcn,
                          manual_arg_types=manual_arg_types,
                          manual_arg_nargs=manual_arg_nargs,
                          skip_args=skip_args)
    args = parser.parse_args(argv)

    return fcn(**vars(args))
