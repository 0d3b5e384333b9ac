"""
Identity bootstrap against a mocked Identity Toolkit endpoint.

Run with:
    pytest test_identity_bootstrap.py
"""

import asyncio
import json

import httpx
import jwt

from portfolio.services.identity_service import (
    PROVIDER_ANONYMOUS,
    PROVIDER_CUSTOM_TOKEN,
    PROVIDER_LOCAL,
    IdentityBootstrap,
    IdentityProvider,
)

BASE_URL = "https://identity.test/v1"


def make_provider(handler) -> IdentityProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IdentityProvider("test-key", BASE_URL, client=client)


def make_handler(custom_token_status=200, anonymous_status=200, calls=None):
    id_token = jwt.encode({"user_id": "token-user"}, "irrelevant", algorithm="HS256")

    def handler(request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        if calls is not None:
            calls.append(endpoint)
        assert request.url.params["key"] == "test-key"
        body = json.loads(request.content)
        if endpoint == "accounts:signInWithCustomToken":
            assert body["token"] == "custom-token"
            if custom_token_status != 200:
                return httpx.Response(custom_token_status, json={"error": {"message": "INVALID_CUSTOM_TOKEN"}})
            return httpx.Response(200, json={"idToken": id_token, "refreshToken": "r1", "expiresIn": "3600"})
        if endpoint == "accounts:signUp":
            if anonymous_status != 200:
                return httpx.Response(anonymous_status, json={"error": {"message": "ADMIN_ONLY_OPERATION"}})
            return httpx.Response(200, json={"idToken": "anon-id-token", "refreshToken": "r2", "localId": "anon-user"})
        return httpx.Response(404)

    return handler


def test_custom_token_wins_when_configured():
    calls = []

    async def scenario():
        bootstrap = IdentityBootstrap(make_provider(make_handler(calls=calls)), initial_token="custom-token")
        return await bootstrap.start()

    identity = asyncio.run(scenario())
    assert identity.uid == "token-user"
    assert identity.provider == PROVIDER_CUSTOM_TOKEN
    assert calls == ["accounts:signInWithCustomToken"]


def test_anonymous_sign_in_without_token():
    async def scenario():
        bootstrap = IdentityBootstrap(make_provider(make_handler()))
        return await bootstrap.start(), bootstrap

    identity, bootstrap = asyncio.run(scenario())
    assert identity.uid == "anon-user"
    assert identity.provider == PROVIDER_ANONYMOUS
    assert not identity.is_degraded
    assert bootstrap.error is None


def test_rejected_token_falls_back_to_anonymous():
    calls = []

    async def scenario():
        handler = make_handler(custom_token_status=400, calls=calls)
        bootstrap = IdentityBootstrap(make_provider(handler), initial_token="custom-token")
        return await bootstrap.start()

    identity = asyncio.run(scenario())
    assert identity.provider == PROVIDER_ANONYMOUS
    assert calls == ["accounts:signInWithCustomToken", "accounts:signUp"]


def test_all_sign_ins_failing_yields_local_identity():
    async def scenario():
        handler = make_handler(custom_token_status=400, anonymous_status=400)
        bootstrap = IdentityBootstrap(make_provider(handler), initial_token="custom-token")
        identity = await bootstrap.start()
        return identity, bootstrap

    identity, bootstrap = asyncio.run(scenario())
    assert identity.provider == PROVIDER_LOCAL
    assert identity.is_degraded
    assert identity.uid.startswith("local-")
    assert bootstrap.is_ready
    assert "400" in bootstrap.error


def test_network_failure_is_not_fatal():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    async def scenario():
        return await IdentityBootstrap(make_provider(handler)).start()

    assert asyncio.run(scenario()).is_degraded


def test_ready_fires_once_and_waiters_share_the_identity():
    changes = []

    async def scenario():
        provider = make_provider(make_handler())
        provider.on_identity_changed(changes.append)
        bootstrap = IdentityBootstrap(provider)
        waiter = asyncio.create_task(bootstrap.wait_ready())
        await asyncio.sleep(0)
        assert not waiter.done()

        first = await bootstrap.start()
        second = await bootstrap.start()
        return first, second, await waiter

    first, second, waited = asyncio.run(scenario())
    assert first is second is waited
    assert [identity.uid for identity in changes] == ["anon-user"]


def test_sign_out_notifies_listeners_and_detach_stops_them():
    changes = []

    async def scenario():
        provider = make_provider(make_handler())
        detach = provider.on_identity_changed(changes.append)
        await provider.sign_in_anonymously()
        provider.sign_out()
        detach()
        await provider.sign_in_anonymously()
        return provider

    provider = asyncio.run(scenario())
    assert [identity.uid if identity else None for identity in changes] == ["anon-user", None]
    assert provider.current.uid == "anon-user"


def test_bootstrap_follows_provider_sign_out_and_sign_in():
    async def scenario():
        provider = make_provider(make_handler())
        bootstrap = IdentityBootstrap(provider)
        await bootstrap.start()
        provider.sign_out()
        signed_out = bootstrap.identity
        again = await provider.sign_in_anonymously()
        return bootstrap, signed_out, again

    bootstrap, signed_out, again = asyncio.run(scenario())
    assert signed_out is None
    assert bootstrap.identity is again
    assert bootstrap.is_ready


def test_closed_bootstrap_stops_following_provider():
    async def scenario():
        provider = make_provider(make_handler())
        bootstrap = IdentityBootstrap(provider)
        identity = await bootstrap.start()
        bootstrap.close()
        provider.sign_out()
        return bootstrap, identity

    bootstrap, identity = asyncio.run(scenario())
    assert bootstrap.identity is identity
