import numpy as np
import pytest

from asphere.bias import TempPartial
from asphere.compute import Compute, ComputeTempAsphere
from asphere.errors import ConfigurationError, ExtendedParticleError
from asphere.particles import allocate_atoms, random_ellipsoid_gas, subset_atoms
from asphere.system import System
from asphere.types import Units

from conftest import ellipsoid_system, gas_system, run_team


def _temp(system, **kwargs):
    temp = system.add_compute(ComputeTempAsphere(system, "temp", **kwargs))
    return temp


def test_single_sphere_translation_only():
    system = ellipsoid_system(n=1)
    system.atoms.rmass[0] = 2.0
    system.atoms.v[0] = [1.0, 2.0, 3.0]
    temp = _temp(system)
    temp.modify(extra_dof=3)
    temp.init()

    assert temp.dof == 3
    energy = 2.0 * (1.0 + 4.0 + 9.0)
    assert temp.compute_scalar() == pytest.approx(energy * temp.tfactor)
    assert temp.compute_scalar() == pytest.approx(energy / 3.0)


def test_kinetic_tensor_of_single_ellipsoid():
    system = ellipsoid_system(n=1, shape=(1.0, 2.0, 3.0))
    # Ix, Iy, Iz = 2.6, 2.0, 1.0 so this angular momentum spins at w = (1, 1, 1)
    system.atoms.angmom[0] = [2.6, 2.0, 1.0]
    system.atoms.v[0] = [1.0, 0.0, 0.0]
    temp = _temp(system)
    temp.init()

    assert np.allclose(temp.compute_vector(), [3.6, 2.0, 1.0, 2.6, 2.0, 1.0])


def test_trace_matches_scalar_before_dof_scaling():
    system = gas_system(n=200, units=Units.from_style("real"))
    temp = _temp(system)
    temp.init()

    t = temp.compute_scalar()
    ke = temp.compute_vector()
    boltz = system.units.boltz
    assert ke[:3].sum() == pytest.approx(t * temp.dof * boltz, rel=1e-10)


def test_equipartition_of_random_gas():
    system = gas_system(n=2000)
    temp = _temp(system)
    temp.init()
    assert temp.compute_scalar() == pytest.approx(1.0, rel=0.05)


def test_nonpositive_dof_gives_zero_temperature():
    system = ellipsoid_system(n=1)
    system.atoms.v[0] = [5.0, -3.0, 1.0]
    system.atoms.angmom[0] = [1.0, 1.0, 1.0]
    temp = _temp(system)
    for extra in (6, 10):
        temp.modify(extra_dof=extra)
        temp.init()
        assert temp.dof <= 0
        assert temp.tfactor == 0.0
        assert temp.compute_scalar() == 0.0


def test_two_dimensional_base_multiplier():
    dofs = {}
    for dim in (2, 3):
        system = ellipsoid_system(n=10, dimension=dim)
        temp = _temp(system)
        temp.modify(extra_dof=0)
        temp.init()
        dofs[dim] = temp.dof
    assert dofs[2] == 30
    assert dofs[3] == 60


def test_default_extra_dof_is_dimension():
    system = ellipsoid_system(n=10, dimension=2)
    temp = _temp(system)
    temp.init()
    assert temp.dof == 3 * 10 - 2


def test_group_restricts_members():
    system = ellipsoid_system(n=4)
    system.atoms.v[:] = [[1.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 0.0, 0.0], [9.0, 9.0, 9.0]]
    system.add_group("left", np.array([0, 1, 2]))
    temp = system.add_compute(ComputeTempAsphere(system, "temp", group="left"))
    temp.modify(extra_dof=0)
    temp.init()

    assert temp.dof == 18
    assert temp.compute_scalar() == pytest.approx(5.0 / 18.0)


def test_point_particle_in_group_is_rejected():
    system = ellipsoid_system(n=3)
    system.atoms.ellipsoid[1] = -1
    temp = _temp(system)
    with pytest.raises(ExtendedParticleError) as err:
        temp.init()
    assert err.value.index == 1


def test_point_particle_outside_group_is_allowed():
    system = ellipsoid_system(n=3)
    system.atoms.ellipsoid[2] = -1
    system.add_group("ellipsoids", np.array([0, 1]))
    temp = system.add_compute(ComputeTempAsphere(system, "temp", group="ellipsoids"))
    temp.init()
    assert temp.compute_scalar() == 0.0


def test_requires_ellipsoid_store():
    system = System(allocate_atoms(2))
    with pytest.raises(ConfigurationError):
        ComputeTempAsphere(system, "temp")


def test_scalar_is_memoised_per_step():
    system = ellipsoid_system(n=2)
    system.atoms.v[:] = 1.0
    temp = _temp(system)
    temp.init()

    first = temp.scalar()
    assert temp.invoked_scalar == system.step
    system.atoms.v[:] = 2.0
    assert temp.scalar() == first

    system.advance()
    assert temp.scalar() == pytest.approx(4.0 * first)
    assert temp.invoked_scalar == 1


def test_vector_is_memoised_per_step():
    system = ellipsoid_system(n=2)
    system.atoms.v[:] = 1.0
    temp = _temp(system)
    temp.init()

    first = temp.vector().copy()
    system.atoms.v[:] = 3.0
    assert np.array_equal(temp.vector(), first)
    system.advance()
    assert np.allclose(temp.vector(), 9.0 * first)


def test_bias_restored_when_accumulation_fails(monkeypatch):
    system = ellipsoid_system(n=3)
    system.atoms.v[:] = np.arange(9, dtype=np.float64).reshape(3, 3)
    before = system.atoms.v.copy()
    system.add_compute(TempPartial(system, "tbias", xflag=False))
    temp = _temp(system, bias="tbias")
    temp.init()

    def boom(*args):
        raise FloatingPointError("kernel failure")

    monkeypatch.setattr("asphere.compute.asphere_energy", boom)
    with pytest.raises(FloatingPointError):
        temp.compute_scalar()
    assert np.array_equal(system.atoms.v, before)


def test_remove_restore_without_bias_are_noops():
    system = ellipsoid_system(n=1)
    temp = _temp(system)
    temp.init()
    v = np.array([1.0, 2.0, 3.0])
    temp.remove_bias(0, v)
    assert np.array_equal(v, [1.0, 2.0, 3.0])
    temp.restore_bias(0, v)
    assert np.array_equal(v, [1.0, 2.0, 3.0])


def test_base_compute_has_no_results():
    system = ellipsoid_system(n=1)
    plain = Compute(system, "plain")
    with pytest.raises(NotImplementedError):
        plain.compute_scalar()


@pytest.mark.parametrize("workers", [2, 3])
def test_result_independent_of_partitioning(workers):
    box = np.array([10.0, 10.0, 10.0])
    atoms, bonus = random_ellipsoid_gas(300, box)

    def evaluate(system):
        temp = system.add_compute(ComputeTempAsphere(system, "temp"))
        temp.init()
        return temp.compute_scalar(), temp.compute_vector()

    serial_t, serial_v = evaluate(System(atoms, bonus))

    parts = np.array_split(np.random.permutation(300), workers)

    def worker(comm, rank):
        local, local_bonus = subset_atoms(atoms, bonus, parts[rank])
        return evaluate(System(local, local_bonus, comm=comm))

    results = run_team(workers, worker)
    for t, v in results:
        assert t == pytest.approx(serial_t, rel=1e-12)
        assert np.allclose(v, serial_v, rtol=1e-12)
    # every worker sees the identical reduced value
    assert len({t for t, _ in results}) == 1


class CountingPartial(TempPartial):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scalar_calls = 0
        self.vector_calls = 0

    def compute_scalar(self):
        self.scalar_calls += 1
        return super().compute_scalar()

    def compute_vector(self):
        self.vector_calls += 1
        return super().compute_vector()


def test_bias_compute_refreshed_once_per_step():
    system = gas_system(n=20)
    tbias = system.add_compute(CountingPartial(system, "tbias", zflag=False))
    temp = _temp(system, bias="tbias")
    temp.init()

    temp.compute_scalar()
    temp.compute_scalar()
    assert tbias.scalar_calls == 1
    assert tbias.vector_calls == 0

    temp.compute_vector()
    temp.compute_vector()
    assert tbias.vector_calls == 1
    assert tbias.scalar_calls == 1

    system.advance()
    temp.compute_scalar()
    temp.compute_vector()
    assert tbias.scalar_calls == 2
    assert tbias.vector_calls == 2


def test_bias_computed_earlier_in_the_step_is_reused():
    system = gas_system(n=20)
    tbias = system.add_compute(CountingPartial(system, "tbias", xflag=False))
    temp = _temp(system, bias="tbias")
    temp.init()

    system.advance()
    tbias.scalar()
    tbias.vector()
    temp.compute_scalar()
    temp.compute_vector()
    assert tbias.scalar_calls == 1
    assert tbias.vector_calls == 1
