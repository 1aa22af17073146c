from services.workspace import Mutation


def notice(message: str, result: Mutation, **payload) -> dict:
    """Mutation response body; `sync_error` is present only when the store write failed."""
    out = {"message": message, "synced": result.synced}
    if result.error:
        out["sync_error"] = result.error
    out.update(payload)
    return out
