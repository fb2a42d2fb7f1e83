"""
firetodo: per-user todo lists behind stateless sessions.

The FastAPI app lives in `firetodo.main`; the realtime client library in
`firetodo.client`.
"""

__version__ = "0.1.0"
