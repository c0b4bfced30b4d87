"""Thin API launcher.

This is the uvicorn entrypoint. All application logic lives in the tandem package.
Run with: uvicorn main:app --reload

The app instance is created here (not in tandem.app) so that importing
create_app has no side effects and tests can build their own app.
"""

from tandem.app import add_request_id_middleware, create_app

app = create_app()
# Add request-id middleware LAST so it runs FIRST (outermost)
add_request_id_middleware(app)

__all__ = ["app"]
