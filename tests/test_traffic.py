#
# tests/test_traffic.py
#

import pytest

from vpnadmin.errors import ValidationError
from vpnadmin.wireguard.traffic import PeerCounters, aggregate, format_bytes


@pytest.mark.parametrize(
	"n, text",
	[
		(0, "0 B"),
		(1, "1.00 B"),
		(1023, "1023.00 B"),
		(1024, "1.00 KB"),
		(1536, "1.50 KB"),
		(1024 ** 2, "1.00 MB"),
		(5 * 1024 ** 3, "5.00 GB"),
		(1024 ** 4, "1.00 TB"),
		(2048 * 1024 ** 4, "2048.00 TB"),
	],
)
def test_format_bytes(n, text):
	assert format_bytes(n) == text


def test_format_bytes_monotone_within_tier():
	values = [float(format_bytes(n).split()[0]) for n in range(1024, 1024 ** 2, 4099)]
	assert values == sorted(values)


@pytest.mark.parametrize("bad", [-1, 1.5, "10", True])
def test_format_bytes_rejects_bad_input(bad):
	with pytest.raises(ValidationError):
		format_bytes(bad)


def test_aggregate_empty():
	summary = aggregate([])
	assert summary.average_per_peer == 0
	assert summary.total == 0
	assert summary.per_peer_total == []


def test_aggregate_sums_and_average():
	summary = aggregate([
		PeerCounters(bytes_received=100, bytes_sent=50),
		{"bytes_received": 1000, "bytes_sent": 850},
	])
	assert summary.total_received == 1100
	assert summary.total_sent == 900
	assert summary.per_peer_total == [150, 1850]
	assert summary.average_per_peer == 1000
	assert summary.formatted()["total"] == "1.95 KB"
	assert summary.as_dict()["peer_count"] == 2


def test_aggregate_rejects_negative_counter():
	with pytest.raises(ValidationError):
		aggregate([{"bytes_received": 10, "bytes_sent": -1}])
