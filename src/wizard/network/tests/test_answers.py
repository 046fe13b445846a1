"""
测试问答答案到 NetworkSpec 的转换。
"""

from src.wizard.network.schemas import NetworkSpec, WizardAnswers
from src.wizard.network.services import create_config_from_answers


def test_bash_defaults():
    answers = WizardAnswers.model_validate(
        {"name": "dev", "numberNodes": 3, "consensus": "raft", "transactionManager": "tessera-1.6"}
    )
    spec = create_config_from_answers(answers)

    assert len(spec.nodes) == 3
    assert [n.quorum.dev_p2p_port for n in spec.nodes] == [21000, 21001, 21002]
    assert [n.quorum.raft_port for n in spec.nodes] == [50401, 50402, 50403]
    assert spec.nodes[2].quorum.rpc_port == 22002
    assert spec.nodes[0].tm.third_party_port == 9081
    assert spec.nodes[0].tm.p2p_port == 9001


def test_container_defaults():
    answers = WizardAnswers.model_validate(
        {
            "name": "dev",
            "numberNodes": 2,
            "consensus": "istanbul",
            "transactionManager": "tessera-1.6",
            "deployment": "docker-compose",
        }
    )
    spec = create_config_from_answers(answers)

    assert [n.quorum.ip for n in spec.nodes] == ["172.16.239.11", "172.16.239.12"]
    assert all(n.quorum.raft_port is None for n in spec.nodes)
    assert spec.nodes[1].tm.ip == "172.16.239.102"
    assert spec.nodes[1].tm.p2p_port == 9000


def test_no_tm_without_transaction_manager():
    spec = create_config_from_answers(WizardAnswers(name="dev", number_nodes=2))
    assert all(n.tm is None for n in spec.nodes)


def test_custom_nodes_are_kept():
    answers = WizardAnswers.model_validate(
        {
            "name": "dev",
            "consensus": "clique",
            "nodes": [{"quorum": {"ip": "10.0.0.5", "devP2pPort": 30303}}],
        }
    )
    spec = create_config_from_answers(answers)

    assert isinstance(spec, NetworkSpec)
    assert len(spec.nodes) == 1
    assert spec.nodes[0].quorum.ip == "10.0.0.5"
