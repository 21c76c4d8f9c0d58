import numpy as np
import pytest

from pathevo.config import ConfigurationError, EvaluationError, Objective, ScoringConfig, Sense
from pathevo.evolver import DifferentialEvolver, SolverState
from pathevo.fitness import FitnessEvaluator
from pathevo.obstacles import ObstacleField


def sphere(v):
    """Função de teste: máximo em v = 0.3."""
    return -float(np.sum((v - 0.3) ** 2))


@pytest.fixture
def evolver():
    de = DifferentialEvolver(scale_factor=0.7, crossover_rate=0.3, seed=42)
    de.initialize(12, 6, -0.5, 1.5)
    de.set_objective_function(sphere)
    return de


def test_initialize_population_shape_and_bounds(evolver):
    assert evolver.pop.shape == (12, 6)
    assert np.all(evolver.pop >= -0.5)
    assert np.all(evolver.pop <= 1.5)
    assert evolver.state is SolverState.EVOLVING


@pytest.mark.parametrize("size", [0, 1, 3])
def test_initialize_rejects_small_population(size):
    """Com menos de 4 indivíduos não há três doadores distintos do alvo."""
    de = DifferentialEvolver(seed=1)
    with pytest.raises(ConfigurationError):
        de.initialize(size, 4, 0.0, 1.0)
    assert de.state is SolverState.INITIALIZED


@pytest.mark.parametrize("genes, lower, upper", [
    (0, 0.0, 1.0),
    (4, float("nan"), 1.0),
    (4, 0.0, float("inf")),
    (4, 1.0, 0.0),
])
def test_initialize_rejects_bad_configuration(genes, lower, upper):
    with pytest.raises(ConfigurationError):
        DifferentialEvolver(seed=1).initialize(10, genes, lower, upper)


def test_improve_requires_objective():
    de = DifferentialEvolver(seed=1)
    de.initialize(5, 4, 0.0, 1.0)
    with pytest.raises(EvaluationError):
        de.improve()


def test_fixed_prefix_and_suffix_are_never_mutated():
    de = DifferentialEvolver(crossover_rate=1.0, seed=3)
    de.initialize(8, 4, -0.5, 1.5, prefix=(0.1, 0.2), suffix=(0.8, 0.9))
    seen = []
    de.set_objective_function(lambda v: seen.append(v.copy()) or -float(np.sum(v ** 2)))
    for _ in range(5):
        de.improve()

    assert all(len(v) == 8 for v in seen)
    assert all(np.allclose(v[:2], [0.1, 0.2]) and np.allclose(v[-2:], [0.8, 0.9]) for v in seen)
    for ind in de.get_population():
        assert np.allclose(ind.genes[:2], [0.1, 0.2])
        assert np.allclose(ind.genes[-2:], [0.8, 0.9])


def test_genes_stay_within_bounds(evolver):
    evolver.scale_factor = 5.0  # força vetores mutantes fora do intervalo
    for _ in range(10):
        evolver.improve()
        assert np.all(evolver.pop >= -0.5)
        assert np.all(evolver.pop <= 1.5)


def test_best_fitness_never_decreases(evolver):
    """Seleção gulosa: o melhor fitness é monotonicamente não decrescente."""
    evolver.improve()
    best = [evolver.best().fitness]
    for _ in range(20):
        evolver.improve()
        best.append(evolver.best().fitness)
    assert all(b >= a for a, b in zip(best, best[1:]))
    assert best[-1] > best[0]


def test_minimize_sense_never_increases():
    de = DifferentialEvolver(crossover_rate=0.5, maximize=False, seed=5)
    de.initialize(10, 4, -1.0, 1.0)
    de.set_objective_function(lambda v: float(np.sum(v ** 2)))
    best = []
    for _ in range(15):
        de.improve()
        best.append(de.best().fitness)
    assert all(b <= a for a, b in zip(best, best[1:]))


def test_population_size_and_gene_count_are_constant(evolver):
    for _ in range(3):
        evolver.improve()
    assert evolver.population_size == 12
    assert evolver.gene_count == 6
    assert len(evolver.get_population()) == 12


def test_donors_are_distinct_from_target(evolver):
    for target in range(evolver.population_size):
        donors = evolver._pick_donors(target)
        assert len(set(donors.tolist())) == 3
        assert target not in donors


def test_crossover_takes_at_least_one_mutant_gene(evolver, mocker):
    """Mesmo com CR = 0 um gene do mutante é mantido (j_rand)."""
    evolver.crossover_rate = 0.0
    mock_rng = mocker.MagicMock()
    mock_rng.random.return_value = np.full(6, 0.5)
    mock_rng.integers.return_value = 4
    evolver.rng = mock_rng

    target = np.zeros(6)
    mutant = np.ones(6)
    trial = evolver._crossover(target, mutant)

    assert np.array_equal(trial, [0, 0, 0, 0, 1, 0])


def test_worse_trial_keeps_target(evolver):
    evolver.improve()
    pop = evolver.pop.copy()
    fitness = evolver.fitness.copy()
    # qualquer vetor de teste fica pior do que qualquer alvo
    evolver.set_objective_function(lambda v: -1e9)
    evolver.improve()

    assert np.array_equal(evolver.pop, pop)
    assert np.array_equal(evolver.fitness, fitness)


def test_get_fitness_matches_population(evolver):
    evolver.improve()
    for i, ind in enumerate(evolver.get_population()):
        assert evolver.get_fitness(i) == ind.fitness
        assert ind.fitness == pytest.approx(sphere(ind.genes))


def test_run_stops_between_generations(evolver):
    calls = []
    evolver.run(10, on_generation=lambda gen, de: calls.append(gen), should_continue=lambda: len(calls) < 3)
    assert calls == [1, 2, 3]
    assert evolver.generation == 3


def test_stopped_solver_rejects_improve(evolver):
    evolver.stop()
    assert evolver.state is SolverState.STOPPED
    with pytest.raises(RuntimeError):
        evolver.improve()


def test_end_to_end_distance_improves(blank_image):
    """Campo vazio, início (0,0), objetivo (1,1), só a distância minimizada.

    O melhor indivíduo final termina mais perto do objetivo do que a média
    da população inicial. O destino fica automático (sem sufixo fixo): com o
    objetivo fixado como último ponto de controle toda curva terminaria
    exatamente nele e a distância final seria sempre 0.
    """
    field = ObstacleField(blank_image, 10)
    scoring = ScoringConfig(
        collisions=Objective(0.0),
        distance=Objective(1.0, Sense.MINIMIZE),
        arc_length=Objective(0.0),
        automatic_destination=True,
    )
    evaluator = FitnessEvaluator(field, (1.0, 1.0), scoring)
    de = DifferentialEvolver(0.7, 0.05, seed=2024)
    de.initialize(50, 30, -0.5, 1.5, prefix=(0.0, 0.0))
    de.set_objective_function(evaluator)

    initial = [evaluator.components(ind.genes).final_distance for ind in de.get_population()]
    best = de.run(30)
    final = evaluator.components(best.genes).final_distance

    assert final < np.mean(initial)


def test_population_is_evaluated_before_first_generation():
    """Antes do primeiro improve() os valores expostos já são finitos."""
    calls = []
    de = DifferentialEvolver(seed=9)
    de.initialize(6, 4, 0.0, 1.0)
    de.set_objective_function(lambda v: calls.append(1) or sphere(v))

    population = de.get_population()
    assert all(np.isfinite(ind.fitness) for ind in population)
    assert de.get_fitness(0) == population[0].fitness
    assert len(calls) == 6

    # a avaliação inicial é reaproveitada pela primeira geração
    de.improve()
    assert len(calls) == 12


def test_genomes_keep_fixed_points_out_of_free_genes():
    de = DifferentialEvolver(seed=4)
    de.initialize(5, 4, 0.0, 1.0, prefix=(0.1, 0.2), suffix=(0.8, 0.9))
    genomes = de.genomes()

    assert len(genomes) == 5
    for genome, free in zip(genomes, de.pop):
        assert genome.prefix == (0.1, 0.2)
        assert genome.suffix == (0.8, 0.9)
        assert np.array_equal(genome.free, free)
        assert genome.control_points().shape == (4, 2)
        assert np.allclose(de.full_vector(free), genome.to_vector())


def test_genomes_without_suffix():
    de = DifferentialEvolver(seed=4)
    de.initialize(5, 4, 0.0, 1.0, prefix=(0.1, 0.2))
    genome = de.genomes()[0]

    assert genome.suffix is None
    assert genome.control_points().shape == (3, 2)
