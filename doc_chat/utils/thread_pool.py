import asyncio
from concurrent.futures import ThreadPoolExecutor

IO_POOL_VAL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="doc-chat-io")


def run_sync(func, *args, **kwargs):
    """
    Run blocking code off the current event loop.
    Used for:
    - PDF parsing (pypdf)
    - URL fetching (requests)
    """
    loop = asyncio.get_running_loop()
    return loop.run_in_executor(IO_POOL_VAL, lambda: func(*args, **kwargs))
