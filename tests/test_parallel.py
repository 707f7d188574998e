"""
Parallel chain tests
"""

from fluxchain import Chain, Environment, LocalEnvironment, ParallelChain, TickScheduler, manual_defer


def make_env(**values):
    messages = []
    env = Environment(log=messages.append, scheduler=TickScheduler(defer=manual_defer), **values)
    return env, messages


class Recorder:
    """Terminal continuation that remembers every call"""

    def __init__(self):
        self.calls = []

    def __call__(self, *values):
        self.calls.append(values)


def delayed(label, ticks, finished):
    """Branch step that answers ``label`` after ``ticks`` extra scheduler entries"""

    def branch(env, after):
        def wait(remaining):
            if remaining:
                env.scheduler.schedule(wait, (remaining - 1,))
            else:
                finished.append(label)
                after(label)

        wait(ticks)

    branch.__name__ = label
    return branch


def test_results_ordered_by_branch_index():
    """Results follow branch order even when completion order differs"""
    env, _ = make_env()
    done = Recorder()
    finished = []

    ParallelChain(
        delayed("slow", 4, finished),
        delayed("medium", 2, finished),
        delayed("fast", 0, finished),
    )(env, done)
    env.scheduler.run_until_idle()

    assert finished == ["fast", "medium", "slow"]
    assert done.calls == [(["slow", "medium", "fast"],)]


def test_all_branches_start_in_same_pass():
    """Every branch starts before any scheduled follow-up runs"""
    env, _ = make_env()
    started = []

    def branch(env, after):
        started.append(env.branch_index)
        env.scheduler.schedule(after)

    ParallelChain(branch, branch, branch)(env)
    assert started == []

    env.scheduler.drain(limit=3)
    assert started == [0, 1, 2]


def test_arguments_are_broadcast():
    """Each branch receives the chain's arguments"""
    env, _ = make_env()
    done = Recorder()

    def plus_one(env, after, n):
        after(n + 1)

    def times_ten(env, after, n):
        after(n * 10)

    ParallelChain(plus_one, times_ten)(env, done, 5)
    env.scheduler.run_until_idle()

    assert done.calls == [([6, 50],)]


def test_branches_use_local_environments():
    """Branches see parent attributes but keep their own value stacks"""
    env, _ = make_env(prefix="item")
    done = Recorder()
    seen = []

    def branch(env, after):
        seen.append((type(env), env.prefix, env.branch_index))
        env.push_value(env.branch_index)
        after(f"{env.prefix}-{env.branch_index}")

    ParallelChain(branch, branch)(env, done)
    env.scheduler.run_until_idle()

    assert seen == [(LocalEnvironment, "item", 0), (LocalEnvironment, "item", 1)]
    assert done.calls == [(["item-0", "item-1"],)]
    assert env.values == []


def test_multiple_values_become_tuples():
    """Several values from one branch are stored as a tuple"""
    env, _ = make_env()
    done = Recorder()

    def pair(env, after):
        after(1, 2)

    def single(env, after):
        after(3)

    def nothing(env, after):
        after()

    ParallelChain(pair, single, nothing)(env, done)
    env.scheduler.run_until_idle()

    assert done.calls == [([(1, 2), 3, None],)]


def test_no_output_means_no_arguments():
    """When no branch produces output, after gets nothing"""
    env, _ = make_env()
    done = Recorder()

    def quiet(env, after):
        after()

    ParallelChain(quiet, quiet)(env, done)
    env.scheduler.run_until_idle()

    assert done.calls == [()]


def test_empty_parallel_completes_next_tick():
    """A parallel chain without branches finishes with no arguments"""
    env, _ = make_env()
    done = Recorder()

    ParallelChain()(env, done)
    assert done.calls == []

    env.scheduler.run_until_idle()
    assert done.calls == [()]


def test_failing_branches_reported_once():
    """Several failing branches produce exactly one handler call with the last error"""
    env, messages = make_env()
    done = Recorder()
    errors = []

    def fail_a(env, after):
        raise ValueError("a")

    def fail_b(env, after):
        env.throw_exception(KeyError("b"))

    def fine(env, after):
        after("ok")

    def handler(env, err):
        errors.append(err)

    ParallelChain(fail_a, fail_b, fine).set_exception_handler(handler)(env, done)
    env.scheduler.run_until_idle()

    assert len(errors) == 1
    assert isinstance(errors[0], KeyError)
    assert done.calls == []
    assert messages == []


def test_failure_unwinds_to_enclosing_chain():
    """A parallel failure can be caught by an enclosing chain"""
    env, _ = make_env()
    done = Recorder()
    errors = []

    def broken(env, after):
        raise RuntimeError("branch failed")

    def fine(env, after):
        after(1)

    def handler(env, err):
        errors.append(str(err))
        env.catch_exception()

    Chain(ParallelChain(fine, broken)).set_exception_handler(handler)(env, done)
    env.scheduler.run_until_idle()

    assert errors == ["branch failed"]
    assert done.calls == [()]


def test_unhandled_branch_failure_halts():
    """A branch failure with no handler anywhere logs once"""
    env, messages = make_env()
    done = Recorder()

    def broken(env, after):
        raise RuntimeError("nobody listens")

    ParallelChain(broken, broken)(env, done)
    env.scheduler.run_until_idle()

    assert done.calls == []
    assert len(messages) == 1
    assert messages[0].startswith("Uncaught exception")


def test_nested_compositions_as_branches():
    """Branches can be chains"""
    env, _ = make_env()
    done = Recorder()

    def add_one(env, after, n):
        after(n + 1)

    def double(env, after, n):
        after(n * 2)

    ParallelChain(Chain(add_one, double), Chain(double, add_one))(env, done, 3)
    env.scheduler.run_until_idle()

    assert done.calls == [([8, 7],)]


def test_parallel_output_feeds_next_step():
    """The result list is the next step's argument"""
    env, _ = make_env()
    done = Recorder()

    def one(env, after):
        after(1)

    def two(env, after):
        after(2)

    def total(env, after, values):
        after(sum(values))

    Chain(ParallelChain(one, two), total)(env, done)
    env.scheduler.run_until_idle()

    assert done.calls == [(3,)]
    assert ParallelChain(one, two).arity == 0
