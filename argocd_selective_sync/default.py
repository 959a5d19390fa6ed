import os


ROOT_DIR = os.getcwd()
CONFIG_DIR = 'config'
OUTPUT_DIR = 'hooks'
LOG_CONFIG_FILE = 'log_config.yml'
LOGLEVEL = 'INFO'

APP_DIRS = ['apps', '.argocd']
REQUIRED_MANIFESTS = ['deployment', 'service']
MANIFESTS_DIR = 'environments'
HOOK_FILENAME = 'post-sync-hook.yaml'

TIER_LABEL = 'argocd-selective-sync/tier'
ENVIRONMENT_LABEL = 'environment'
CHECKS_ANNOTATION = 'argocd-selective-sync/checks'

ENV_NAME_MAX_LENGTH = 20
SERVICE_TYPES = ['ClusterIP', 'NodePort', 'LoadBalancer']

ARGOCD_DEFAULTS = {
  'namespace': 'argocd',
  'project': 'default',
  'repo_url': 'https://github.com/nicholasadamou/argocd-app-config.git',
  'target_revision': 'HEAD',
  'server': 'https://kubernetes.default.svc',
}

SERVICES_DEFAULTS = {
  'demo-app': {
    'workload': 'argocd-demo-app',
    'service': 'argocd-demo-app-service',
    'image': 'nanajanashia/argocd-app:1.2',
    'port': 8080,
    'env_var': 'ENVIRONMENT',
    'resources': {
      'requests': {'memory': '128Mi', 'cpu': '100m'},
      'limits': {'memory': '256Mi', 'cpu': '200m'},
    },
  },
  'api-service': {
    'workload': 'api-service',
    'service': 'api-service',
    'image': 'nginx:1.21',
    'port': 80,
    'env_var': 'ENV',
    'replica_offset': 1,
    'service_type': 'ClusterIP',
    'resources': {
      'requests': {'memory': '64Mi', 'cpu': '50m'},
      'limits': {'memory': '128Mi', 'cpu': '100m'},
    },
  },
}

HOOK_IMAGE = 'curlimages/curl:8.5.0'

ARGOCD_APPLICATION_CR_TEMPLATE = '''\
  apiVersion: argoproj.io/v1alpha1
  kind: Application
  metadata:
    name: {{ app_name }}
    namespace: {{ argocd.namespace }}
    labels:
      environment: {{ env_name }}
      {{ tier_label }}: {{ tier }}
  spec:
    project: {{ argocd.project }}
    source:
      repoURL: {{ argocd.repo_url }}
      targetRevision: {{ argocd.target_revision }}
      path: {{ source_path }}
    destination:
      server: {{ argocd.server }}
      namespace: {{ namespace }}
    syncPolicy:
      {{ sync_policy | to_nice_yaml(indent=2) | trim | indent(4) }}
  '''

DEPLOYMENT_TEMPLATE = '''\
  apiVersion: apps/v1
  kind: Deployment
  metadata:
    name: {{ service.workload }}
  spec:
    selector:
      matchLabels:
        app: {{ service.workload }}
    replicas: {{ replicas }}
    template:
      metadata:
        labels:
          app: {{ service.workload }}
          environment: {{ env_name }}
      spec:
        containers:
        - name: {{ service.workload }}
          image: {{ service.image }}
          ports:
          - containerPort: {{ service.port }}
          env:
          - name: {{ service.env_var }}
            value: "{{ env_name }}"
  {%- if production_like and service.resources | default({}) %}
          resources:
            {{ service.resources | to_nice_yaml(indent=2) | trim | indent(10) }}
  {%- endif %}
  '''

SERVICE_TEMPLATE = '''\
  apiVersion: v1
  kind: Service
  metadata:
    name: {{ service.service }}
  spec:
    selector:
      app: {{ service.workload }}
    ports:
    - port: {{ service.port }}
      protocol: TCP
      targetPort: {{ service.port }}
    type: {{ service_type }}
  '''

POST_SYNC_HOOK_TEMPLATE = '''\
  apiVersion: batch/v1
  kind: Job
  metadata:
    name: {{ hook_name }}
    namespace: {{ namespace }}
    annotations:
      argocd.argoproj.io/hook: PostSync
      argocd.argoproj.io/hook-delete-policy: BeforeHookCreation
    labels:
      app.kubernetes.io/part-of: {{ app_name }}
      {{ tier_label }}: {{ tier }}
  spec:
    backoffLimit: {{ retry_attempts }}
    template:
      spec:
        restartPolicy: Never
        containers:
        - name: validate
          image: {{ image }}
          command: ["/bin/sh", "-c"]
          args:
          - |
            set -e
            echo "Waiting {{ wait_seconds }}s for {{ app_name }} to start"
            sleep {{ wait_seconds }}
  {%- for check in checks %}
            echo "Running {{ check.name }} check"
            {{ check.command }}
  {%- endfor %}
            echo "{{ app_name }} post-sync validation passed"
  '''
