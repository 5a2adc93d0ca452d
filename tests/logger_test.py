import jax.numpy as jnp
import pytest

from ciaopts import logger as logger_module
from ciaopts.logger import Logger, state_metrics
from ciaopts.solver import SAGA, Finito
from tests.test_util import TestCase, lasso_problem


class _FakeWandb:
    def __init__(self):
        self.init_kwargs = None
        self.logged = []
        self.finished = False

    def init(self, **kwargs):
        self.init_kwargs = kwargs

    def log(self, data, step=None):
        self.logged.append((step, data))

    def finish(self):
        self.finished = True


@pytest.fixture
def fake_wandb(monkeypatch):
    fake = _FakeWandb()
    monkeypatch.setattr(logger_module, "wandb", fake)
    return fake


class TestLogger(TestCase):

    def test_state_metrics(self):
        """
        Test the default metrics of Finito and SAGA states.
        """
        problem = lasso_problem(jnp.float32)
        state = next(iter(Finito().iterator(problem.x0, F=problem.F, g=problem.g)))
        metrics = state_metrics(state)
        assert metrics["epoch"] == 0
        assert metrics["residual"] == float("inf")
        assert metrics["gamma"] == pytest.approx(float(state.hat_gamma))

        state = next(iter(SAGA().iterator(problem.x0, F=problem.F, g=problem.g)))
        assert state_metrics(state)["gamma"] == pytest.approx(float(state.gamma))

    def test_log_frequency(self, fake_wandb, capsys):
        """
        Test that entries are only logged every log_freq iterations.
        """
        logger = Logger(3, log_fn=lambda value: {"value": value}, verbose=True)
        entries = [logger._compute_log(i, float(i)) for i in range(1, 7)]
        assert [e is not None for e in entries] == [False, False, True] * 2
        assert entries[2]["metrics"] == {"value": 3.0}
        assert "iter_time" in entries[2] and "cum_time" in entries[2]

        out = capsys.readouterr().out
        assert "value 3.000e+00" in out
        assert "value 6.000e+00" in out

        # nothing is sent to wandb without wandb_kwargs
        assert fake_wandb.init_kwargs is None
        assert fake_wandb.logged == []

    def test_wandb(self, fake_wandb):
        """
        Test that a run logs to wandb when wandb_kwargs is given.
        """
        problem = lasso_problem(jnp.float32)
        solver = SAGA(
            maxit=20, tol=0.0, log_freq=5, wandb_kwargs={"project": "ciaopts-test"}
        )
        solver.run(problem.x0, F=problem.F, g=problem.g)

        assert fake_wandb.init_kwargs == {"project": "ciaopts-test"}
        assert [step for step, _ in fake_wandb.logged] == [5, 10, 15, 20]
        assert set(fake_wandb.logged[-1][1]["metrics"]) == {
            "epoch",
            "residual",
            "gamma",
        }
        assert fake_wandb.finished
