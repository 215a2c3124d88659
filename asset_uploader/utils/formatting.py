"""Human readable byte sizes."""


def format_bytes(value: int) -> str:
    """Format bytes as KB/MB the way the share dialog shows them."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "0 KB"
    if number <= 0:
        return "0 KB"
    kb = number / 1024
    if kb < 1024:
        return f"{kb:.1f} KB" if kb < 10 else f"{kb:.0f} KB"
    mb = kb / 1024
    if mb < 1024:
        return f"{mb:.1f} MB" if mb < 10 else f"{mb:.0f} MB"
    gb = mb / 1024
    return f"{gb:.2f} GB"
