import logging

import requests

from ..config import MigratorConfig
from ..errors import RegistrationError, RevokeError, TokenError
from ..models import AccessToken, ClientRegistration
from ..utils import mask
from .client import ApimClient

logger = logging.getLogger(__name__)

REGISTER_PATH = "client-registration/v0.17/register"
TOKEN_PATH = "oauth2/token"
REVOKE_PATH = "oauth2/revoke"


class AuthManager:
    """
    Credential lifecycle of a run: dynamic client registration, password
    grant token, token revocation.
    """

    def __init__(self, client: ApimClient, config: MigratorConfig) -> None:
        self._client = client
        self._config = config

    def register(self) -> ClientRegistration:
        """Register the dynamic client this run authenticates as."""
        logger.info("registering a dynamic client")
        dcr = self._config.dynamic_client_registration
        payload = {
            "callbackUrl": dcr.callback_url,
            "clientName": dcr.client_name,
            "owner": dcr.owner,
            "grantType": dcr.grant_types,
            "saasApp": dcr.saas_app,
        }
        try:
            resp = self._client.post(
                REGISTER_PATH,
                json=payload,
                basic=(self._config.username, self._config.password),
            )
            body = self._client.json(resp)
            registration = ClientRegistration(
                client_id=str(body["clientId"]),
                client_secret=str(body["clientSecret"]),
            )
        except requests.RequestException as e:
            raise RegistrationError("Dynamic client registration failed", cause=e,
                                    client_name=dcr.client_name) from e
        except (ValueError, KeyError) as e:
            raise RegistrationError("Unexpected registration response", cause=e,
                                    client_name=dcr.client_name) from e

        logger.info("dynamic client registered -> client_id: %s, client_secret: %s",
                    registration.client_id, mask(registration.client_secret))
        return registration

    def issue_token(self, registration: ClientRegistration) -> AccessToken:
        """Exchange the operator credentials for a bearer token (password grant)."""
        logger.info("generating access token")
        form = {
            "grant_type": "password",
            "username": self._config.username,
            "password": self._config.password,
            "scope": self._config.scopes,
        }
        try:
            resp = self._client.post(
                TOKEN_PATH,
                data=form,
                basic=(registration.client_id, registration.client_secret),
            )
            token = AccessToken.from_dict(self._client.json(resp))
        except requests.RequestException as e:
            raise TokenError("Token request failed", cause=e,
                             client_id=registration.client_id) from e
        except (ValueError, KeyError) as e:
            raise TokenError("Unexpected token response", cause=e,
                             client_id=registration.client_id) from e

        logger.info("generated access token -> %s (expires in %s s)",
                    mask(token.access_token), token.expires_in)
        return token

    def revoke(self, token: AccessToken, registration: ClientRegistration) -> bool:
        """Revoke the access token. Failures are logged, never raised."""
        logger.info("revoking the access token %s", mask(token.access_token))
        try:
            self._client.post(
                REVOKE_PATH,
                data={"token": token.access_token},
                basic=(registration.client_id, registration.client_secret),
            )
        except requests.RequestException as e:
            logger.error("%s", RevokeError("Token revocation failed", cause=e,
                                           client_id=registration.client_id))
            return False
        logger.info("token revoked -> %s", mask(token.access_token))
        return True
