from piranha.calltree import DecodeResult


def format_thread_name(thread_id: int) -> str:
    return f"thread {thread_id}"


def percent_of_samples(count: int, result: DecodeResult) -> float:
    if not result.total_samples:
        return 0.0
    return count / result.total_samples * 100


def format_percent(percent: float) -> str:
    return f"{percent:.2f}%"
