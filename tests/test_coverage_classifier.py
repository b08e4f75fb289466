from coverage_engine.coverage_classifier import STAGES, CoverageClassifier
from coverage_engine.models import RadioType, VerdictReason
from coverage_engine.whitelist import PLMNWhitelist


def classifier(**overrides):
    options = dict(max_distance_km=5.0, min_samples=5)
    options.update(overrides)
    return CoverageClassifier(**options)


class TestCoverageClassifier:
    """Four-stage tower filtering"""

    def test_supported_lte_tower_nearby(self, center, make_tower, whitelist):
        tower = make_tower(mcc=310, mnc=410, radio=RadioType.LTE, samples=20, north_km=2.0)

        verdict = classifier().classify([tower], center, whitelist)

        assert verdict.supported is True
        assert verdict.reason == VerdictReason.MATCHED_TOWER
        assert verdict.matched_tower == tower

    def test_empty_whitelist_never_matches(self, center, make_tower):
        tower = make_tower(mcc=310, mnc=410, samples=20)

        verdict = classifier().classify([tower], center, PLMNWhitelist.empty(["A"]))

        assert verdict.supported is False
        assert verdict.reason == VerdictReason.NO_MATCHING_TOWER
        assert verdict.matched_tower is None
        assert verdict.rejections["whitelist"] == 1

    def test_legacy_radios_only(self, center, make_tower, whitelist):
        towers = [
            make_tower(cell_id=1, radio=RadioType.GSM, samples=50),
            make_tower(cell_id=2, radio=RadioType.UMTS, samples=50),
        ]

        verdict = classifier().classify(towers, center, whitelist)

        assert verdict.supported is False
        assert verdict.rejections["radio"] == 2

    def test_no_towers(self, center, whitelist):
        verdict = classifier().classify([], center, whitelist)
        assert verdict.supported is False
        assert verdict.towers_examined == 0
        assert set(verdict.rejections) == set(STAGES)

    def test_first_qualifying_tower_after_rejections(self, center, make_tower, whitelist):
        towers = [
            make_tower(cell_id=1, radio=RadioType.GSM),
            make_tower(cell_id=2, samples=1),
            make_tower(cell_id=3, north_km=7.0),
            make_tower(cell_id=4, mcc=311, mnc=480),
            make_tower(cell_id=5, mnc=260, radio=RadioType.NR),
            make_tower(cell_id=6),
        ]

        verdict = classifier().classify(towers, center, whitelist)

        assert verdict.supported is True
        assert verdict.matched_tower.cell_id == 5
        assert verdict.towers_examined == 5
        assert verdict.rejections == {"radio": 1, "reliability": 1, "distance": 1, "whitelist": 1}

    def test_sample_threshold_is_inclusive(self, center, make_tower, whitelist):
        assert classifier().classify([make_tower(samples=5)], center, whitelist).supported
        assert not classifier().classify([make_tower(samples=4)], center, whitelist).supported

    def test_distance_uses_great_circle(self, center, make_tower, whitelist):
        inside = make_tower(east_km=4.9)
        outside = make_tower(east_km=5.2)

        assert classifier().classify([inside], center, whitelist).supported
        assert classifier().rejection_stage(outside, center, whitelist) == "distance"

    def test_lte_m_counts_as_modern(self, center, make_tower, whitelist):
        tower = make_tower(radio=RadioType.LTE_M)
        assert classifier().classify([tower], center, whitelist).supported

    def test_configurable_radio_set(self, center, make_tower, whitelist):
        nr_only = classifier(accepted_radios=[RadioType.NR])
        assert nr_only.rejection_stage(make_tower(radio=RadioType.LTE), center, whitelist) == "radio"
        assert nr_only.rejection_stage(make_tower(radio=RadioType.NR), center, whitelist) is None

    def test_two_digit_mnc_matches_padded_whitelist_entry(self, center, make_tower):
        whitelist = PLMNWhitelist.from_records([{"PLMN": "31026", "Group": "A"}], ["A"])
        tower = make_tower(mcc=310, mnc=26)
        assert classifier().classify([tower], center, whitelist).supported

    def test_stage_order_reports_radio_before_reliability(self, center, make_tower, whitelist):
        tower = make_tower(radio=RadioType.GSM, samples=0, north_km=50.0, mcc=999, mnc=99)
        assert classifier().rejection_stage(tower, center, whitelist) == "radio"
