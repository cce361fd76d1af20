from v2raykit.profile import (
    InboundObject,
    OutboundObject,
    OutboundType,
    PortRange,
    ProfileContent,
    RuleObject,
    merge_json,
)


def test_port_range_single_value():
    assert str(PortRange(443)) == "443"
    assert PortRange(443).end == 443


def test_port_range_span():
    text = str(PortRange(1000, 2000))
    assert text.split("-") == ["1000", "2000"]


def test_port_range_unset():
    assert PortRange().is_set is False
    assert PortRange(80, 80).is_set is True


def test_find_outbound_returns_match():
    first = OutboundObject(name="proxy", protocol="vmess")
    second = OutboundObject(name="proxy", protocol="trojan")
    profile = ProfileContent(outbounds=[OutboundObject(name="direct"), first, second])
    assert profile.find_outbound("proxy") is first


def test_find_outbound_missing_returns_default():
    profile = ProfileContent(outbounds=[OutboundObject(name="direct")])
    found = profile.find_outbound("nope")
    assert found == OutboundObject()
    assert found.object_type is OutboundType.ORIGINAL


def test_merge_json_nested():
    target = {"a": {"x": 1, "y": 2}, "b": [1]}
    result = merge_json(target, {"a": {"y": 3, "z": 4}, "b": [2], "c": "v"})
    assert result is target
    assert target == {"a": {"x": 1, "y": 3, "z": 4}, "b": [2], "c": "v"}


def test_merge_json_copies_source():
    source = {"inner": {"list": [1, 2]}}
    target = {}
    merge_json(target, source)
    target["inner"]["list"].append(3)
    assert source["inner"]["list"] == [1, 2]


def test_merge_json_replaces_scalar_with_object():
    target = {"k": 1}
    merge_json(target, {"k": {"n": 2}})
    assert target == {"k": {"n": 2}}


def test_mux_enabled_flag():
    assert InboundObject(mux_settings={"enabled": True}).mux_enabled is True
    assert OutboundObject().mux_enabled is False


def test_rule_defaults_are_independent():
    first = RuleObject()
    second = RuleObject()
    first.target_domains.append("example.com")
    assert second.target_domains == []