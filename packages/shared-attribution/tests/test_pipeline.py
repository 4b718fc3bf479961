"""Tests for the attribution pipeline entry points."""

import pandas as pd
import pytest
from touchpath.attribution.config import AttributionConfig
from touchpath.attribution.normalizer import TouchpointNormalizer
from touchpath.attribution.pipeline import (
    FractionalAttribution,
    attribution_fit,
    channel_revenue_attribution_report,
    channel_row,
    normalize_channel_name,
)
from touchpath.attribution.schema import CustomerPath
from touchpath.paths import InvalidConfiguration, InvalidInput, PathSummaryBuilder, Touchpoint


class TestChannelNames:
    """Test output identifier normalization."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Paid Search", "paid_search"),
            ("e-Mail", "e_mail"),
            ("Paid  -  Social", "paid_social"),
            ("EMAIL", "email"),
        ],
    )
    def test_normalize_channel_name(self, name, expected):
        """Test lowercasing and separator collapsing."""
        assert normalize_channel_name(name) == expected

    def test_channel_row_merges_tagged_tokens(self):
        """Test tokens of one channel in different buckets are merged."""
        row = channel_row({"Search(3-4)": 0.2, "Search(1)": 0.3, "Email(1)": 0.5}, "recency")

        assert row == pytest.approx({"search": 0.5, "email": 0.5})

    def test_channel_row_strips_frequency_tags(self):
        """Test frequency counts are stripped."""
        row = channel_row({"Paid Search(2)": 0.6, "Email(1)": 0.4}, "frequency")

        assert row == {"paid_search": 0.6, "email": 0.4}

    @pytest.mark.parametrize("method", ["unique", "exposure", "first"])
    def test_channel_row_keeps_parentheses_without_tags(self, method):
        """Test parentheses are part of the channel name under untagged methods."""
        row = channel_row({"Sale(2024)": 0.25, "Sale(2025)": 0.75}, method)

        assert row == {"sale(2024)": 0.25, "sale(2025)": 0.75}


class TestAttributionFitPathLevel:
    """Test attribution_fit with path_level_only."""

    def test_wide_table(self, worked_summary_records):
        """Test one row per converting path and one column per channel."""
        df = attribution_fit(worked_summary_records, "unique", path_level_only=True)

        assert list(df.columns) == ["path", "total_paths", "converting_paths", "conversion_prob", "a", "b", "c"]
        assert len(df) == 4

        row = df.set_index("path").loc["B > C > A"]
        assert row["a"] == pytest.approx(0.358, abs=1e-3)
        assert row["b"] == pytest.approx(0.434, abs=1e-3)
        assert row["c"] == pytest.approx(0.208, abs=1e-3)
        assert row["total_paths"] == 11

    def test_absent_channels_zero_filled(self, worked_summary_records):
        """Test channels not on a path are 0.0, never missing."""
        df = attribution_fit(worked_summary_records, "unique", path_level_only=True)

        row = df.set_index("path").loc["B > C"]
        assert row["a"] == 0.0
        assert row["b"] + row["c"] == pytest.approx(1.0)
        assert not df[["a", "b", "c"]].isna().any().any()

    def test_dataframe_input(self, worked_summary_records):
        """Test a DataFrame summary is accepted."""
        df = attribution_fit(pd.DataFrame(worked_summary_records), "unique", path_level_only=True)

        assert len(df) == 4

    def test_unnormalized(self, worked_summary_records):
        """Test raw probability differences when normalize is off."""
        df = attribution_fit(worked_summary_records, "unique", normalize=False, path_level_only=True)

        row = df.set_index("path").loc["B > C > A"]
        assert row["a"] == pytest.approx(0.0909 - 0.0730)

    def test_rule_based_model(self, worked_summary_records):
        """Test the model switch."""
        df = attribution_fit(worked_summary_records, "unique", path_level_only=True, model="last_touch")

        row = df.set_index("path").loc["B > C > A"]
        assert (row["a"], row["b"], row["c"]) == (1.0, 0.0, 0.0)

    def test_threaded_matches_inline(self, worked_summary_records):
        """Test max_workers does not change the result."""
        inline = attribution_fit(worked_summary_records, "unique", path_level_only=True)
        threaded = attribution_fit(worked_summary_records, "unique", path_level_only=True, max_workers=4)

        pd.testing.assert_frame_equal(inline, threaded)

    def test_prebuilt_summary_method_mismatch(self):
        """Test a summary built with another method is rejected."""
        summary = PathSummaryBuilder("exposure").build([("A > B", True)])

        with pytest.raises(InvalidConfiguration, match="exposure"):
            attribution_fit(summary, "unique", path_level_only=True)

    def test_malformed_summary(self):
        """Test malformed summary records surface InvalidInput."""
        with pytest.raises(InvalidInput):
            attribution_fit([{"path": "A", "total_paths": 1, "converting_paths": 3}], "unique", path_level_only=True)

    def test_channel_colliding_with_column(self):
        """Test a channel named like a fixed column is rejected."""
        with pytest.raises(InvalidInput, match="collide"):
            attribution_fit(
                [{"path": "Path > Email", "total_paths": 2, "converting_paths": 1}],
                "unique",
                path_level_only=True,
            )

    def test_customer_column_names_allowed_path_level(self):
        """Test customer column names are free channel names without the join."""
        df = attribution_fit(
            [{"path": "Revenue > Email", "total_paths": 2, "converting_paths": 1}],
            "unique",
            path_level_only=True,
        )

        assert list(df.columns) == ["path", "total_paths", "converting_paths", "conversion_prob", "email", "revenue"]
        assert df.loc[0, "path"] == "Revenue > Email"

    def test_unsupported_method(self, worked_summary_records):
        """Test unsupported methods fail before any work."""
        with pytest.raises(InvalidConfiguration):
            attribution_fit(worked_summary_records, "markov", path_level_only=True)


class TestAttributionFitCustomerLevel:
    """Test attribution_fit joined back to customers."""

    def test_customer_paths_required(self, worked_summary_records):
        """Test customer records are required for customer-level output."""
        with pytest.raises(InvalidConfiguration, match="customer_paths"):
            attribution_fit(worked_summary_records, "unique")

    def test_join(self, worked_summary_records):
        """Test each customer gets its transformed path's fractions."""
        customers = [
            CustomerPath("B > C > A", converted=True, revenue=10.0, customer_id="X"),
            CustomerPath("D", converted=False, customer_id="Y"),
        ]

        df = attribution_fit(worked_summary_records, "unique", customer_paths=customers)

        assert list(df.columns[:7]) == [
            "customer_id",
            "converted",
            "revenue",
            "transformed_path",
            "total_paths",
            "converting_paths",
            "conversion_prob",
        ]
        by_id = df.set_index("customer_id")
        assert by_id.loc["X", "b"] == pytest.approx(0.434, abs=1e-3)
        assert by_id.loc["Y", "transformed_path"] == "D"
        assert by_id.loc["Y", "total_paths"] == 0
        assert (by_id.loc["Y", "a"], by_id.loc["Y", "b"], by_id.loc["Y", "c"]) == (0.0, 0.0, 0.0)

    def test_join_canonicalizes_raw_paths(self):
        """Test customer paths are transformed before the join."""
        summary = [
            {"path": "A > B", "total_paths": 4, "converting_paths": 2},
            {"path": "B", "total_paths": 4, "converting_paths": 1},
        ]
        customers = [{"customer_id": "C1", "path": "A > A > B", "converted": True, "revenue": 5.0}]

        df = attribution_fit(summary, "exposure", customer_paths=customers)

        assert df.loc[0, "transformed_path"] == "A > B"
        assert df.loc[0, "a"] + df.loc[0, "b"] == pytest.approx(1.0)


    def test_channel_colliding_with_customer_column(self):
        """Test channels named like customer columns are rejected in the join."""
        with pytest.raises(InvalidInput, match="revenue"):
            attribution_fit(
                [{"path": "Revenue > Email", "total_paths": 2, "converting_paths": 1}],
                "unique",
                customer_paths=[{"customer_id": "C1", "path": "Revenue > Email", "converted": True}],
            )

    def test_frequency_join(self):
        """Test raw customer paths meet frequency summary keys."""
        summary = [{"path": "A(2) > B(1)", "total_paths": 2, "converting_paths": 1}]
        customers = [{"customer_id": "C1", "path": "A > B > A", "converted": True, "revenue": 4.0}]

        df = attribution_fit(summary, "frequency", customer_paths=customers)

        assert df.loc[0, "transformed_path"] == "A(2) > B(1)"
        assert df.loc[0, "a"] == pytest.approx(0.5)
        assert df.loc[0, "b"] == pytest.approx(0.5)


class TestChannelRevenueReport:
    """Test channel_revenue_attribution_report."""

    def test_report(self, sample_customer_records):
        """Test attributed conversions and revenue per channel."""
        df = channel_revenue_attribution_report(sample_customer_records, "unique")
        report = df.set_index("channel")

        assert list(df["channel"]) == ["email", "display", "search"]
        assert report.loc["email", "attributed_conversions"] == pytest.approx(2.0)
        assert report.loc["email", "attributed_revenue"] == pytest.approx(150.0)
        assert report.loc["display", "attributed_revenue"] == pytest.approx(30.0)
        assert report.loc["search", "attributed_revenue"] == pytest.approx(0.0)

    def test_revenue_conserved(self, sample_customer_records):
        """Test attributed revenue sums to converting revenue."""
        df = channel_revenue_attribution_report(sample_customer_records, "exposure")

        assert df["attributed_revenue"].sum() == pytest.approx(180.0)
        assert df["attributed_conversions"].sum() == pytest.approx(3.0)

    def test_channel_names_normalized(self):
        """Test report channels use normalized identifiers."""
        df = channel_revenue_attribution_report(
            [
                {"path": "Paid Search > e-Mail", "converted": True, "revenue": 10.0},
                {"path": "Paid Search", "converted": False, "revenue": 0.0},
            ],
            "unique",
        )

        assert list(df["channel"]) == ["e_mail", "paid_search"]
        assert df["attributed_revenue"].tolist() == pytest.approx([5.0, 5.0])

    def test_recency_from_touch_log(self, sample_touch_records):
        """Test recency attribution on paths built from a touch log."""
        customers = TouchpointNormalizer().normalize(sample_touch_records)

        df = channel_revenue_attribution_report(customers, "recency")
        report = df.set_index("channel")

        assert set(report.index) == {"search", "email"}
        assert report["attributed_revenue"].sum() == pytest.approx(50.0)

    def test_frequency_tags_stripped(self):
        """Test frequency counts do not leak into channel names."""
        df = channel_revenue_attribution_report(
            [{"path": "A > B > A", "converted": True, "revenue": 10.0}],
            "frequency",
        )

        assert set(df["channel"]) == {"a", "b"}

    def test_skips_empty_converting_paths(self):
        """Test converting customers without touchpoints are skipped."""
        df = channel_revenue_attribution_report(
            [
                {"path": "", "converted": True, "revenue": 99.0},
                {"path": "A", "converted": True, "revenue": 1.0},
            ],
            "unique",
        )

        assert df["attributed_revenue"].sum() == pytest.approx(1.0)

    def test_dataframe_input(self, sample_customer_records):
        """Test a DataFrame of customers is accepted."""
        df = channel_revenue_attribution_report(pd.DataFrame(sample_customer_records), "unique")

        assert len(df) == 3


    def test_parenthesized_channels_stay_distinct(self):
        """Test raw channels with parentheses are not merged under unique."""
        df = channel_revenue_attribution_report(
            [
                {"path": "Sale(2024) > Email", "converted": True, "revenue": 10.0},
                {"path": "Sale(2025)", "converted": True, "revenue": 10.0},
                {"path": "Email", "converted": False, "revenue": 0.0},
            ],
            "unique",
        )
        report = df.set_index("channel")

        assert set(report.index) == {"sale(2024)", "sale(2025)", "email"}
        assert report.loc["sale(2025)", "attributed_conversions"] == pytest.approx(1.0)
        assert report.loc["sale(2024)", "attributed_conversions"] == pytest.approx(0.5)

    def test_mixed_records_keep_touchpoints(self):
        """Test CustomerPath objects mixed with dicts keep their days before conversion."""
        customers = [
            CustomerPath(
                [Touchpoint("Search", 3), Touchpoint("Email", 1)],
                converted=True,
                revenue=20.0,
                customer_id="C1",
            ),
            {"customer_id": "C2", "path": "Email(1)", "converted": False, "revenue": 0.0},
        ]

        df = channel_revenue_attribution_report(customers, "recency")
        report = df.set_index("channel")

        assert set(report.index) == {"search", "email"}
        assert report["attributed_revenue"].sum() == pytest.approx(20.0)


class TestFractionalAttribution:
    """Test the configured runner."""

    def test_config_from_env(self, monkeypatch, worked_summary_records):
        """Test the runner falls back to environment configuration."""
        monkeypatch.setenv("TOUCHPATH_PATH_LEVEL_ONLY", "true")
        monkeypatch.setenv("TOUCHPATH_TRANSFORM_METHOD", "unique")

        attribution = FractionalAttribution()

        assert attribution.config.path_level_only is True
        assert len(attribution.fit(worked_summary_records)) == 4

    def test_explicit_config(self, sample_customer_records):
        """Test an explicit configuration is used."""
        attribution = FractionalAttribution(AttributionConfig(transform_method="first", model="linear"))

        df = attribution.channel_report(sample_customer_records)

        assert df.set_index("channel").loc["email", "attributed_conversions"] == pytest.approx(1.5)
