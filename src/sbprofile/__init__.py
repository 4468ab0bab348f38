"""
sbprofile: parameterized sandbox-profile compiler.

sbprofile takes the runtime parameters of a sandboxed child process (platform
version, feature toggles, filesystem paths, process role) and compiles them,
together with a read-only library of guarded rule fragments, into the ordered
SBPL document that the macOS Seatbelt engine loads and enforces.

Package layout (src/sbprofile/):
  core/           parameters, errors, config, logging, capabilities
  core/policy/    fragment model, evaluator, templates, composer, emitter
  profiles/       built-in fragment libraries (content process)
  cli/            Click CLI entry point
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
