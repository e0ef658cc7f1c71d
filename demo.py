#!/usr/bin/env python3
"""
Demo script for sharedstate showing basic usage.

    python demo.py hello      # two processes, one shared value
    python demo.py mutex      # why and how to use lock()/unlock()
    python demo.py progress   # follow a long-running task from another process
"""

import logging
import sys
import time
from multiprocessing import Event, Process

from sharedstate import SharedStore
from sharedstate.config import get_config


def hello_child(path):
    """Child process overwrites what the parent wrote."""
    shared = SharedStore(path)
    shared["hello"] = "Hello, world!"
    print("[child] wrote hello")


def hello():
    cfg = get_config()
    shared = SharedStore(cfg["DEMO_FILE"])
    shared["hello"] = "foo, bar!"
    print("[main] hello before child:", shared["hello"])

    p = Process(target=hello_child, args=(cfg["DEMO_FILE"],))
    p.start()
    p.join()

    print("[main] hello after child:", shared["hello"])


def mutex_worker(path, go):
    shared = SharedStore(path)
    go.wait()

    # Without the mutex every worker may see the flag unset.
    if shared["without_mutex_done"] is False:
        time.sleep(1)  # a "long" calculation
        shared["without_mutex"] = shared["without_mutex"] + 1
        shared["without_mutex_done"] = True

    # With the mutex only one worker at a time gets in here.
    with shared.mutex():
        if shared["with_mutex_done"] is False:
            time.sleep(1)
            shared["with_mutex"] = shared["with_mutex"] + 1
            shared["with_mutex_done"] = True


def mutex():
    cfg = get_config()
    shared = SharedStore(cfg["DEMO_FILE"])
    shared.set_data({
        "without_mutex_done": False,
        "without_mutex": 1,
        "with_mutex_done": False,
        "with_mutex": 1,
    })

    go = Event()
    workers = [Process(target=mutex_worker, args=(cfg["DEMO_FILE"], go)) for _ in range(5)]
    for p in workers:
        p.start()
    go.set()
    for p in workers:
        p.join()

    print("[main] without mutex, 1 + 1 =", shared["without_mutex"])  # anything from 2 to 6
    print("[main] with a mutex, 1 + 1 =", shared["with_mutex"])  # always 2


def progress_task(path):
    """Simulates a long-running task reporting its progress."""
    shared = SharedStore(path)
    for i in range(0, 101, 10):
        shared["percentage"] = i
        time.sleep(0.2)
    shared["percentage"] = None


def progress():
    cfg = get_config()
    shared = SharedStore(cfg["DEMO_FILE"])
    shared.remove("percentage")

    p = Process(target=progress_task, args=(cfg["DEMO_FILE"],))
    p.start()
    time.sleep(0.1)

    while "percentage" in shared:
        print(f"[main] task still in progress: {shared['percentage']}%")
        time.sleep(0.3)
    p.join()
    print("[main] task finished")


DEMOS = {
    "hello": hello,
    "mutex": mutex,
    "progress": progress,
}


def main():
    """Main demo function."""
    cfg = get_config()
    logging.basicConfig(
        level=cfg["LOG_LEVEL"],
        format="%(asctime)s %(processName)s %(name)s %(levelname)s %(message)s",
    )

    name = sys.argv[1] if len(sys.argv) > 1 else "hello"
    if name not in DEMOS:
        print(f"usage: {sys.argv[0]} [{'|'.join(DEMOS)}]")
        sys.exit(2)
    DEMOS[name]()


if __name__ == "__main__":
    main()
