from smart_retrieval.config import ClassifierConfig, OrchestratorConfig, RouterConfig
from smart_retrieval.types import RoutePath, route_flags


def test_focus_constants_are_unchanged() -> None:
    config = OrchestratorConfig()

    assert config.probe_size == 10
    assert config.single_source_margin == 1.15
    assert config.single_source_min_count == 2
    assert config.pair_margin == 1.2
    assert config.high_confidence_threshold == 0.7
    assert config.default_source == "synced"
    assert config.default_max_chunks == 35


def test_classifier_table_is_unchanged() -> None:
    config = ClassifierConfig()

    assert (config.simple_chunks, config.moderate_chunks, config.complex_chunks) == (5, 10, 20)
    assert (config.simple_max_words, config.moderate_max_words) == (5, 15)
    assert (config.base_confidence, config.confidence_per_match, config.max_confidence) == (0.6, 0.15, 0.9)


def test_router_weights_are_unchanged() -> None:
    config = RouterConfig()

    fast = (
        config.short_weight,
        config.definitional_weight,
        config.self_contained_weight,
        config.counting_weight,
        config.list_weight,
        config.first_message_weight,
    )
    slow = (
        config.analytical_weight,
        config.multi_part_weight,
        config.clauses_weight,
        config.long_weight,
        config.needs_context_weight,
    )
    assert fast == (3, 2, 2, 2, 1, 1)
    assert slow == (3, 3, 2, 2, 2)


def test_route_flag_mapping() -> None:
    fast = route_flags(RoutePath.FAST)
    slow = route_flags(RoutePath.SLOW)

    assert (fast.skip_rephrasing, fast.skip_iterative_retrieval, fast.skip_source_analysis) == (True, True, True)
    assert fast.use_two_stage_search is False
    assert (slow.skip_rephrasing, slow.skip_iterative_retrieval, slow.skip_source_analysis) == (False, False, False)
    assert slow.use_two_stage_search is True
