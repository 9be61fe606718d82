"""
Shared fixtures: sample apps, datasets and DSL documents.
"""
import pytest

from dsl_export.schemas.app import Application
from dsl_export.schemas.dataset import DatasetMapping

FAQ_ID = "6f1c8e4a-0000-4000-8000-000000000001"
MANUAL_ID = "9a7d2b10-0000-4000-8000-000000000002"
UNKNOWN_ID = "c3c3c3c3-0000-4000-8000-000000000003"


WORKFLOW_DSL = f"""app:
  description: 'Answers questions from knowledge base {FAQ_ID}'
  icon: 🤖
  mode: workflow
  name: FAQ Bot
kind: app
version: 0.1.5
workflow:
  graph:
    nodes:
    - data:
        dataset_ids:
        - {FAQ_ID}
        - {MANUAL_ID}
        retrieval_mode: multiple
        title: Knowledge Retrieval
        type: knowledge-retrieval
      id: '1718000000000'
    - data:
        prompt_template:
        - role: system
          text: |
            Context comes from these datasets:
            dataset_ids:
            - {FAQ_ID}
        title: LLM
        type: llm
      id: '1718000000001'
"""


CHAT_DSL = f"""app:
  mode: agent-chat
  name: Support Agent
model_config:
  agent_mode:
    tools:
    - dataset: {{enabled: true, id: {MANUAL_ID}}}
  dataset_configs:
    datasets:
      datasets:
      - dataset:
          enabled: true
          id: {FAQ_ID}
      - dataset:
          enabled: true
          id: {UNKNOWN_ID}
    retrieval_model: multiple
  pre_prompt: ''
"""


def make_app(app_id: str, name: str, mode: str = "workflow") -> Application:
    return Application(id=app_id, name=name, mode=mode, icon="", icon_background="")


@pytest.fixture
def datasets():
    """Datasets visible in the source environment."""
    return [
        DatasetMapping(id=FAQ_ID, name="Customer FAQ"),
        DatasetMapping(id=MANUAL_ID, name="製品マニュアル"),
    ]


@pytest.fixture
def workflow_dsl():
    return WORKFLOW_DSL


@pytest.fixture
def chat_dsl():
    return CHAT_DSL
