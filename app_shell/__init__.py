"""Desktop shell: backend supervision and window lifecycle.

Keep this module lightweight; import submodules directly, e.g.
`from app_shell.controller import ApplicationController`.
"""

__version__ = "0.1.0"
