import pytest

from mapcluster.config import ClusterConfig
from mapcluster.nodes import Cluster, Singleton, abbreviate_count
from mapcluster.telemetry import TelemetrySampler


class Ticker:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


@pytest.fixture
def nodes():
    return [
        Cluster(id=40, latitude=0.0, longitude=0.0, point_count=10, expansion_zoom=5),
        Cluster(id=72, latitude=1.0, longitude=1.0, point_count=4, expansion_zoom=7),
        Singleton(id=3, latitude=2.0, longitude=2.0, source_point_id="abc"),
    ]


def test_sample_contents(nyc_viewport, nodes):
    sampler = TelemetrySampler(ClusterConfig(), clock=Ticker())
    sample = sampler.sample(nyc_viewport, nodes)
    assert sample.current_tile_zoom == 14
    assert sample.map_width == 1080 and sample.map_height == 2340
    assert sample.radius == 40.0 and sample.tile_size == 256
    assert sample.nodes_count == 3
    assert sample.clusters_count == 2
    assert sample.average_markers_per_cluster == pytest.approx(7.0)
    assert sample.last_expansion_zoom is None


def test_sampling_is_throttled(nyc_viewport, nodes):
    clock = Ticker()
    sampler = TelemetrySampler(clock=clock)
    assert sampler.sample(nyc_viewport, nodes) is not None
    clock.t = 0.5
    assert sampler.sample(nyc_viewport, nodes) is None
    clock.t = 1.2
    assert sampler.sample(nyc_viewport, nodes) is not None


def test_expansion_is_reported(nyc_viewport):
    sampler = TelemetrySampler(clock=Ticker())
    sampler.record_expansion(19, 2)
    sample = sampler.sample(nyc_viewport, [])
    assert (sample.last_expansion_zoom, sample.last_children_count) == (19, 2)
    assert sample.average_markers_per_cluster == 0.0


@pytest.mark.parametrize("count, label", [
    (2, "2"), (999, "999"), (1000, "1k"), (1234, "1.2k"), (9999, "10k"),
    (15321, "15k"), (1_000_000, "1M"), (3_460_000, "3.5M"),
])
def test_abbreviated_labels(count, label):
    assert abbreviate_count(count) == label
