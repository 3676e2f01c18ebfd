from shareify_relay.auth.tokens import TokenInfo, inspect_token

__all__ = ["TokenInfo", "inspect_token"]
