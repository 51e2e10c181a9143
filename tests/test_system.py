#
# tests/test_system.py
#

from vpnadmin.utils.system import (
	collect_system_metrics,
	read_interface_counters,
	read_load_average,
	read_memory,
	read_uptime,
)

MEMINFO = """\
MemTotal:        8000000 kB
MemFree:         1000000 kB
MemAvailable:    6000000 kB
Buffers:          100000 kB
"""


def _fake_host(tmp_path):
	proc = tmp_path / "proc"
	proc.mkdir()
	(proc / "uptime").write_text("12345.67 45678.90\n")
	(proc / "loadavg").write_text("0.50 0.25 0.10 1/234 5678\n")
	(proc / "meminfo").write_text(MEMINFO)

	stats = tmp_path / "net" / "wg0" / "statistics"
	stats.mkdir(parents=True)
	for name, value in (("rx_bytes", 2048), ("tx_bytes", 1024), ("rx_packets", 20), ("tx_packets", 10)):
		(stats / name).write_text(f"{value}\n")
	return proc, tmp_path / "net"


def test_proc_readers(tmp_path):
	proc, _ = _fake_host(tmp_path)
	assert read_uptime(proc) == 12345.67
	assert read_load_average(proc) == (0.5, 0.25, 0.1)

	memory = read_memory(proc)
	assert memory["total"] == 8000000 * 1024
	assert memory["available"] == 6000000 * 1024
	assert memory["used"] == 2000000 * 1024
	assert memory["usage_percent"] == 25.0


def test_memfree_fallback(tmp_path):
	(tmp_path / "meminfo").write_text("MemTotal: 1000 kB\nMemFree: 250 kB\n")
	assert read_memory(tmp_path)["usage_percent"] == 75.0


def test_missing_sources_are_none(tmp_path):
	assert read_uptime(tmp_path) is None
	assert read_load_average(tmp_path) is None
	assert read_memory(tmp_path) is None
	assert read_interface_counters("wg0", tmp_path) is None


def test_interface_counters(tmp_path):
	_, net = _fake_host(tmp_path)
	counters = read_interface_counters("wg0", net)
	assert counters.rx_bytes == 2048
	assert counters.tx_packets == 10


def test_collect_system_metrics(tmp_path):
	proc, net = _fake_host(tmp_path)
	metrics = collect_system_metrics(interface="wg0", disk_path=tmp_path, proc_root=proc, net_root=net)
	data = metrics.as_dict()
	assert data["uptime_seconds"] == 12345.67
	assert data["load_average"] == [0.5, 0.25, 0.1]
	assert data["interface"]["name"] == "wg0"
	assert data["disk"]["total"] > 0
	assert data["cpu_count"] >= 1

	without_iface = collect_system_metrics(interface=None, disk_path=tmp_path, proc_root=proc, net_root=net)
	assert without_iface.interface is None


def test_system_endpoint(client, admin_headers):
	resp = client.get("/api/stats/system", headers=admin_headers)
	assert resp.status_code == 200
	data = resp.json()["data"]
	assert set(data) >= {"hostname", "uptime_seconds", "load_average", "memory", "disk", "interface"}
	assert data["disk"]["total"] > 0


def test_system_endpoint_requires_session(client):
	assert client.get("/api/stats/system").status_code == 401
