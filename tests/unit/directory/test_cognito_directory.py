"""Unit tests for the Cognito directory adapter."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from cpf_auth.directory.cognito import (
    CognitoDirectory,
    attributes_to_identity,
    identity_to_attributes,
)
from cpf_auth.exceptions import (
    DirectoryAlreadyExistsError,
    DirectoryFailureError,
    DirectoryNotFoundError,
    DirectoryUnauthorizedError,
)
from cpf_auth.models.enums import IdentityClass
from cpf_auth.models.identity import Identity

from conftest import VALID_CPF

POOL_ID = "us-east-1_TestPool"
CLIENT_ID = "test-client-id"


def client_error(code: str, operation: str = "AdminGetUser", message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def cpf_attributes(email: str = "joao@example.com") -> list[dict]:
    return [
        {"Name": "sub", "Value": "a1b2"},
        {"Name": "name", "Value": "João Silva"},
        {"Name": "email", "Value": email},
        {"Name": "custom:cpf", "Value": VALID_CPF},
        {"Name": "custom:user_type", "Value": "authenticated"},
    ]


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def directory(client) -> CognitoDirectory:
    return CognitoDirectory(client, POOL_ID, CLIENT_ID)


@pytest.fixture
def cpf_identity() -> Identity:
    return Identity(
        key=VALID_CPF,
        display_name="João Silva",
        email="joao@example.com",
        identity_class=IdentityClass.AUTHENTICATED,
    )


class TestAttributeMapping:
    def test_authenticated_identity_attributes(self, cpf_identity):
        attrs = {a["Name"]: a["Value"] for a in identity_to_attributes(cpf_identity)}

        assert attrs == {
            "name": "João Silva",
            "custom:user_type": "authenticated",
            "email": "joao@example.com",
            "email_verified": "true",
            "custom:cpf": VALID_CPF,
        }

    def test_anonymous_identity_attributes(self):
        identity = Identity(key="guest-1", display_name="Guest", identity_class=IdentityClass.ANONYMOUS)
        names = [a["Name"] for a in identity_to_attributes(identity)]

        assert names == ["name", "custom:user_type"]

    def test_user_type_defaults_to_authenticated(self):
        attrs = [a for a in cpf_attributes() if a["Name"] != "custom:user_type"]
        assert attributes_to_identity(VALID_CPF, attrs).identity_class is IdentityClass.AUTHENTICATED

    def test_record_breaking_invariant_is_still_returned(self):
        identity = attributes_to_identity(VALID_CPF, [{"Name": "name", "Value": "Legacy"}])

        assert identity.key == VALID_CPF
        assert identity.email is None


class TestLookups:
    @pytest.mark.asyncio
    async def test_find_by_key(self, directory, client):
        client.admin_get_user.return_value = {"Username": VALID_CPF, "UserAttributes": cpf_attributes()}

        identity = await directory.find_by_key(VALID_CPF)

        assert identity.display_name == "João Silva"
        assert identity.email == "joao@example.com"
        client.admin_get_user.assert_called_once_with(UserPoolId=POOL_ID, Username=VALID_CPF)

    @pytest.mark.asyncio
    async def test_find_by_key_requires_matching_cpf_attribute(self, directory, client):
        attributes = [a for a in cpf_attributes() if a["Name"] != "custom:cpf"]
        attributes.append({"Name": "custom:cpf", "Value": "52998224725"})
        client.admin_get_user.return_value = {"Username": VALID_CPF, "UserAttributes": attributes}

        assert await directory.find_by_key(VALID_CPF) is None
        assert await directory.exists(VALID_CPF) is True

    @pytest.mark.asyncio
    async def test_find_by_key_missing(self, directory, client):
        client.admin_get_user.side_effect = client_error("UserNotFoundException")

        assert await directory.find_by_key(VALID_CPF) is None
        assert await directory.exists(VALID_CPF) is False

    @pytest.mark.asyncio
    async def test_find_by_key_unexpected_error(self, directory, client):
        client.admin_get_user.side_effect = client_error("InternalErrorException")

        with pytest.raises(DirectoryFailureError) as exc_info:
            await directory.find_by_key(VALID_CPF)
        assert "InternalErrorException" in exc_info.value.diagnostic

    @pytest.mark.asyncio
    async def test_network_error_is_failure(self, directory, client):
        client.admin_get_user.side_effect = EndpointConnectionError(endpoint_url="https://cognito")

        with pytest.raises(DirectoryFailureError):
            await directory.exists(VALID_CPF)

    @pytest.mark.asyncio
    async def test_find_by_email(self, directory, client):
        client.list_users.return_value = {
            "Users": [{"Username": VALID_CPF, "Attributes": cpf_attributes()}]
        }

        identity = await directory.find_by_attribute("email", "joao@example.com")

        assert identity.key == VALID_CPF
        client.list_users.assert_called_once_with(
            UserPoolId=POOL_ID, Filter='email = "joao@example.com"', Limit=1
        )

    @pytest.mark.asyncio
    async def test_find_by_email_requires_exact_match(self, directory, client):
        client.list_users.return_value = {
            "Users": [{"Username": VALID_CPF, "Attributes": cpf_attributes("joao@example.com.br")}]
        }

        assert await directory.find_by_attribute("email", "joao@example.com") is None

    @pytest.mark.asyncio
    async def test_find_by_unsupported_attribute(self, directory, client):
        with pytest.raises(DirectoryFailureError):
            await directory.find_by_attribute("phone", "123")
        client.list_users.assert_not_called()


class TestProvisioning:
    @pytest.mark.asyncio
    async def test_create(self, directory, client, cpf_identity):
        client.admin_create_user.return_value = {"User": {"Attributes": [{"Name": "sub", "Value": "abc-sub"}]}}

        assert await directory.create(cpf_identity, "Temp#1") == "abc-sub"

        kwargs = client.admin_create_user.call_args.kwargs
        assert kwargs["UserPoolId"] == POOL_ID
        assert kwargs["Username"] == VALID_CPF
        assert kwargs["TemporaryPassword"] == "Temp#1"
        assert kwargs["MessageAction"] == "SUPPRESS"
        client.admin_set_user_password.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_collision(self, directory, client, cpf_identity):
        client.admin_create_user.side_effect = client_error("UsernameExistsException", "AdminCreateUser")

        with pytest.raises(DirectoryAlreadyExistsError):
            await directory.create(cpf_identity, "Temp#1")

    @pytest.mark.asyncio
    async def test_finalize(self, directory, client):
        await directory.finalize_credential(VALID_CPF, "Perm#1")

        client.admin_set_user_password.assert_called_once_with(
            UserPoolId=POOL_ID, Username=VALID_CPF, Password="Perm#1", Permanent=True
        )

    @pytest.mark.asyncio
    async def test_finalize_vanished(self, directory, client):
        client.admin_set_user_password.side_effect = client_error("UserNotFoundException")

        with pytest.raises(DirectoryNotFoundError):
            await directory.finalize_credential(VALID_CPF, "Perm#1")


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_returns_tokens(self, directory, client):
        client.admin_initiate_auth.return_value = {
            "AuthenticationResult": {"IdToken": "id.jwt", "RefreshToken": "refresh.jwt", "AccessToken": "x"}
        }

        tokens = await directory.authenticate(VALID_CPF, "Perm#1")

        assert tokens.id_token == "id.jwt"
        assert tokens.refresh_token == "refresh.jwt"
        client.admin_initiate_auth.assert_called_once_with(
            UserPoolId=POOL_ID,
            ClientId=CLIENT_ID,
            AuthFlow="ADMIN_USER_PASSWORD_AUTH",
            AuthParameters={"USERNAME": VALID_CPF, "PASSWORD": "Perm#1"},
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, error",
        [
            ("UserNotFoundException", DirectoryNotFoundError),
            ("NotAuthorizedException", DirectoryUnauthorizedError),
            ("TooManyRequestsException", DirectoryFailureError),
        ],
    )
    async def test_error_translation(self, directory, client, code, error):
        client.admin_initiate_auth.side_effect = client_error(code, "AdminInitiateAuth")

        with pytest.raises(error):
            await directory.authenticate(VALID_CPF, "Perm#1")

    @pytest.mark.asyncio
    async def test_challenge_instead_of_tokens(self, directory, client):
        client.admin_initiate_auth.return_value = {"ChallengeName": "NEW_PASSWORD_REQUIRED"}

        with pytest.raises(DirectoryFailureError) as exc_info:
            await directory.authenticate(VALID_CPF, "Temp#1")
        assert "NEW_PASSWORD_REQUIRED" in exc_info.value.diagnostic

    @pytest.mark.asyncio
    async def test_diagnostic_masks_identifiers(self, directory, client):
        client.admin_initiate_auth.side_effect = client_error(
            "InternalErrorException", "AdminInitiateAuth", message=f"user {VALID_CPF} broke"
        )

        with pytest.raises(DirectoryFailureError) as exc_info:
            await directory.authenticate(VALID_CPF, "Perm#1")
        assert VALID_CPF not in exc_info.value.diagnostic
        assert "***7735" in exc_info.value.diagnostic
