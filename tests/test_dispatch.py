from biodock.dispatch import BackgroundRunner
from biodock.result import Error, Success


def test_callback_receives_result():
    received = []
    with BackgroundRunner() as runner:
        future = runner.submit(lambda x: Success(x * 2), 21, callback=received.append)
        assert future.result() == Success(42)
    assert received == [Success(42)]


def test_exception_becomes_error():
    received = []

    def explode():
        raise RuntimeError("daemon went away")

    with BackgroundRunner() as runner:
        future = runner.submit(explode, callback=received.append)
        assert isinstance(future.exception(), RuntimeError)

    assert len(received) == 1
    outcome = received[0]
    assert isinstance(outcome, Error)
    assert outcome.message == "Unexpected error: daemon went away"
    assert isinstance(outcome.cause, RuntimeError)


def test_calls_run_in_submission_order():
    order = []
    with BackgroundRunner() as runner:
        for i in range(5):
            runner.submit(order.append, i)
    assert order == [0, 1, 2, 3, 4]
