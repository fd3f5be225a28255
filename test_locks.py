# test_locks.py
import threading
import time

from lounge.services.locks import KeyedLocks, seat_key


def test_same_key_is_mutually_exclusive():
    locks = KeyedLocks("seat")
    inside, peak = [0], [0]

    def worker():
        with locks.hold(seat_key("PS5", "PS5-1")):
            inside[0] += 1
            peak[0] = max(peak[0], inside[0])
            time.sleep(0.01)
            inside[0] -= 1

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert peak[0] == 1


def test_different_keys_do_not_block():
    locks = KeyedLocks("seat")
    with locks.hold("PS5:PS5-1"):
        done = threading.Event()

        def other():
            with locks.hold("PS5:PS5-2"):
                done.set()

        t = threading.Thread(target=other)
        t.start()
        assert done.wait(1)
        t.join()


def test_multi_key_hold_in_any_order():
    locks = KeyedLocks("food_item")
    errors = []

    def grab(keys):
        try:
            for _ in range(50):
                with locks.hold(*keys):
                    pass
        except Exception as exc:  # pragma: no cover
            errors.append(exc)

    a = threading.Thread(target=grab, args=(("coke", "chips"),))
    b = threading.Thread(target=grab, args=(("chips", "coke"),))
    a.start(); b.start()
    a.join(2); b.join(2)
    assert not a.is_alive() and not b.is_alive()
    assert errors == []
