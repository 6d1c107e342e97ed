"""
AuthKit Python SDK - Basic Usage Example

This example demonstrates the basic usage of the AuthKit Python SDK.
"""

import asyncio
import logging

from authkit import (
    ApiError,
    AuthAPI,
    ClientConfiguration,
    LoggingOptions,
    LogLevel,
    ManagementAPI,
    ProxyOptions,
    RateLimitExceededError,
    TransportError,
)


def sync_example():
    """Blocking client example."""
    print("=== Sync Client Example ===\n")

    config = ClientConfiguration(
        connect_timeout=5,
        read_timeout=15,
        logging=LoggingOptions(LogLevel.HEADERS, frozenset({"Authorization"})),
    )
    api = AuthAPI("tenant.example.com", "my-client-id", "my-client-secret", config)

    url = (
        api.authorize_url("https://me.example.com/callback")
        .with_scope("openid email")
        .with_state("af0ifjsldkj")
        .build()
    )
    print(f"Authorize URL: {url}")

    # Example: Login (would fail without real API)
    password = bytearray(b"p455w0rd")
    try:
        tokens = api.login("me@example.com", password).set_scope("openid").execute()
        print(f"Access token: {tokens.access_token}")
    except ApiError as e:
        print(f"Login failed: {e.description}")
    except TransportError as e:
        print(f"Error (expected without real API): {e.message}")
    finally:
        password[:] = b"\x00" * len(password)

    api.close()


async def async_example():
    """Asynchronous management client example."""
    print("\n=== Async Management Example ===\n")

    config = ClientConfiguration(max_management_retries=5, max_concurrent_requests_per_host=2)
    async with ManagementAPI("tenant.example.com", "api-token", config) as mgmt:
        # Each call is its own task; a 429 is retried with backoff
        tasks = [
            asyncio.create_task(mgmt.users.get(user_id).execute_async())
            for user_id in ("auth0|1", "auth0|2", "auth0|3")
        ]
        for result in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(result, RateLimitExceededError):
                print(f"Still rate limited, resets at {result.reset}")
            elif isinstance(result, Exception):
                print(f"Error (expected without real API): {type(result).__name__}")
            else:
                print(f"User: {result.email}")


def proxy_example():
    """Proxy configuration example."""
    print("\n=== Proxy Example ===\n")

    secret = bytearray(b"proxy-password")
    proxy = ProxyOptions("http://proxy.internal:3128", "johndoe", secret)
    secret[:] = b"\x00" * len(secret)

    config = ClientConfiguration(proxy=proxy)
    print(f"Configured: {proxy!r}")
    AuthAPI("tenant.example.com", "my-client-id", "my-client-secret", config).close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sync_example()
    asyncio.run(async_example())
    proxy_example()

    print("\nExamples completed!")
