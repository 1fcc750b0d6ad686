from decimal import Decimal


def _camel(key: str) -> str:
    head, *rest = key.split('_')
    return head + ''.join(part.title() for part in rest)


def camelize(row):
    """Row dict to an API payload: camelCase keys, decimals as strings."""
    if isinstance(row, list):
        return [camelize(r) for r in row]
    if not isinstance(row, dict):
        return str(row) if isinstance(row, Decimal) else row
    return {_camel(k): camelize(v) for k, v in row.items()}
