from . import exceptions


def _flatten(errors, prefix=""):
    if isinstance(errors, dict):
        for key, value in errors.items():
            label = key if key != "non_field_errors" else ""
            yield from _flatten(value, f"{prefix}{label}." if label else prefix)
    elif isinstance(errors, list):
        for value in errors:
            yield from _flatten(value, prefix)
    else:
        yield f"{prefix.rstrip('.')}: {errors}" if prefix else str(errors)


def validate_input(serializer_class, data, **kwargs):
    """
    Run a DRF serializer over caller input.

    Returns validated data or raises exceptions.ValidationError with a
    readable message listing every problem.
    """
    serializer = serializer_class(data=data, **kwargs)
    if not serializer.is_valid():
        message = "; ".join(_flatten(serializer.errors))
        raise exceptions.ValidationError(
            f"Invalid input: {message}", errors=serializer.errors
        )
    return serializer.validated_data
