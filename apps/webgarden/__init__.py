# -*- coding: utf-8 -*-
"""WebGarden (virtual garden) service package.

- Backend: FastAPI (ASGI)
- Data: SQLite (users + per-user garden documents)
- Engine: core.garden (pure state transitions)
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
