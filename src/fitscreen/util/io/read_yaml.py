import yaml
import re

import os

_SCI_NOTATION = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)$')


def _normalize_types(node):
    """
    Recursively convert strings holding scientific notation (which
    yaml.safe_load leaves as strings, e.g. "1e-2") into floats.
    """

    if isinstance(node, dict):
        return {k: _normalize_types(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_normalize_types(elem) for elem in node]

    if isinstance(node, str) and _SCI_NOTATION.match(node):
        return float(node)

    return node


def read_yaml(cf, required_keys=None) -> dict:
    """
    Load a YAML run configuration.

    Parameters
    ----------
    cf : str or dict
        Path to the YAML file. A dict is passed through untouched (it is
        assumed to have already been read).
    required_keys : list of str, optional
        Top-level keys that must be present.

    Returns
    -------
    dict
        Configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file does not hold a mapping or a required key is missing.
    """

    if isinstance(cf, dict):
        config = cf
    else:
        if not os.path.exists(cf):
            raise FileNotFoundError(f"Configuration file not found: {cf}")

        with open(cf, "r") as f:
            config = yaml.safe_load(f)

        if not isinstance(config, dict):
            raise ValueError(f"Configuration file {cf} does not hold a mapping")

        config = _normalize_types(config)

    if required_keys is not None:
        for k in required_keys:
            if k not in config:
                raise ValueError(f"Missing required field: {k}")

    return config
