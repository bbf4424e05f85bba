"""
Reference snapshot service implementing the versioned store contract.

Run with ``valentine serve`` or ``uvicorn --factory valentine.service.app:create_app``.
"""
