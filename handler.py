from snow_flow import TZ, ShovelSecrets, need_to_shovel


def handler(context, callback):
    """
    Callback-style entry point for schedulers that pass a `context` with
    `secrets` and `storage`, and expect `callback(error, result)` once.
    """
    try:
        secrets = ShovelSecrets(**context.secrets)
        result = need_to_shovel(
            timezone=getattr(context, "timezone", TZ),
            secrets=secrets,
            storage=context.storage,
        )
    except Exception as exc:
        return callback(exc, None)
    return callback(None, result)
