"""
DM Engine - Test Configuration and Fixtures
Shared test utilities and fixtures for pytest.
"""
import pytest
from typing import List
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class SequenceRng:
    """Random source that replays a fixed list of floats."""

    def __init__(self, values: List[float]):
        self.values = list(values)
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.values.pop(0)

    def next(self) -> float:
        return self.random()


def face(value: int, sides: int) -> float:
    """Float that makes roll_die(sides) return exactly `value`."""
    return (value - 1 + 0.5) / sides


# ==================== RNG Fixtures ====================

@pytest.fixture
def sequence_rng():
    """Factory for a random source that yields chosen die faces."""
    def _make(*faces, sides: int = 20):
        return SequenceRng([face(v, sides) for v in faces])
    return _make


# ==================== Encounter Fixtures ====================

@pytest.fixture
def d20_encounter():
    """Fighter (A) vs goblin (B), unseeded."""
    from dm_engine.core.encounter import create_encounter, add_combatant

    encounter = create_encounter(system="d20", title="Goblin Ambush")
    add_combatant(encounter, id="A", name="Thorin", hp=20, ac=15, stats={"dex": 1, "con_save": 5})
    add_combatant(encounter, id="B", name="Goblin", hp=20, ac=10, stats={"dex": 2})
    return encounter


@pytest.fixture
def seeded_d20_encounter():
    """Same roster as d20_encounter, with a fixed seed."""
    from dm_engine.core.encounter import create_encounter, add_combatant

    encounter = create_encounter(system="d20", seed="goblin-ambush", title="Goblin Ambush")
    add_combatant(encounter, id="A", name="Thorin", hp=20, ac=15)
    add_combatant(encounter, id="B", name="Goblin", hp=20, ac=10)
    return encounter


@pytest.fixture
def d6pool_encounter():
    """Street samurai vs ganger, both with condition monitors."""
    from dm_engine.core.encounter import create_encounter, add_combatant

    encounter = create_encounter(system="d6pool", seed="seattle-2075", title="Alley Fight")
    add_combatant(encounter, id="sam", name="Street Samurai", sr={"stun_max": 10, "phys_max": 11, "soak_dice": 9})
    add_combatant(encounter, id="ganger", name="Ganger", stun_max=9, phys_max=10, soak_dice=4)
    return encounter


@pytest.fixture
def generate_combatants():
    """Factory for filling an encounter with numbered combatants."""
    def _generate(encounter, count: int, base_name: str = "Combatant"):
        from dm_engine.core.encounter import add_combatant

        return [
            add_combatant(encounter, id=f"c{i+1}", name=f"{base_name} {i+1}", hp=10 + i, ac=12)
            for i in range(count)
        ]
    return _generate


# ==================== Test Categories ====================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "combat: Combat resolution tests")
    config.addinivalue_line("markers", "determinism: Seeded replay tests")
