import hmac
from typing import Annotated

from fastapi import Depends, Header, Request

from app.exceptions.custom import UnauthorizedError
from app.services.forwarding import ForwardingService


def get_forwarding_service(request: Request) -> ForwardingService:
    return request.app.state.forwarding_service


def verify_shared_secret(
    request: Request,
    x_shared_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request when a shared secret is configured and not presented."""
    expected = request.app.state.settings.shared_secret
    if not expected:
        return
    if not x_shared_secret or not hmac.compare_digest(
        x_shared_secret.encode(), expected.encode()
    ):
        raise UnauthorizedError()


ForwardingDep = Annotated[ForwardingService, Depends(get_forwarding_service)]
SharedSecretDep = Depends(verify_shared_secret)
