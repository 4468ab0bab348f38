"""
sbprofile policy assembly: guarded fragment libraries compiled into SBPL.

Public API::

    from sbprofile.core.policy import Tier, build_store, compose, emit
    from sbprofile.profiles import content_library

    store = build_store({"MAC_OS_VERSION": 1013, "HOME_PATH": "/Users/a", "APP_PATH": "/App"})
    document = compose(content_library(), store, Tier.LEVEL_2, ["default"])
    text = emit(document)
"""

from sbprofile.core.params import ParameterStore, ParamKind, build_store
from sbprofile.core.policy.composer import compile_profile, compose
from sbprofile.core.policy.emitter import emit
from sbprofile.core.policy.evaluator import evaluate
from sbprofile.core.policy.model import (
    Fragment,
    FragmentLibrary,
    PolicyDocument,
    ProcessRole,
    Statement,
    Tier,
)
from sbprofile.core.policy.parser import load_parameter_file, parse_parameter_file
from sbprofile.core.policy.template import render

__all__ = [
    "Fragment",
    "FragmentLibrary",
    "ParamKind",
    "ParameterStore",
    "PolicyDocument",
    "ProcessRole",
    "Statement",
    "Tier",
    "build_store",
    "compile_profile",
    "compose",
    "emit",
    "evaluate",
    "load_parameter_file",
    "parse_parameter_file",
    "render",
]
