"""Constants used across the operator."""

# Prefix shared by every label the operator reads or writes
HYPER_OPS_LABEL = "hyper-ops.cloudmonkey.org"

ENABLED_LABEL = f"{HYPER_OPS_LABEL}/enabled"
GITOPS_NAMESPACE_LABEL = f"{HYPER_OPS_LABEL}/gitops-namespace"
CLUSTER_TYPE_LABEL = f"{HYPER_OPS_LABEL}/type"

# Value of the enabled label that keeps a watched cluster local-only
DISABLED_VALUE = "false"

# Argo CD discovers cluster secrets by this label
ARGOCD_SECRET_TYPE_LABEL = "argocd.argoproj.io/secret-type"
ARGOCD_SECRET_TYPE_CLUSTER = "cluster"

DEFAULT_GITOPS_NAMESPACE = "openshift-gitops"

# Watched resource
HOSTED_CLUSTER_GROUP = "hypershift.openshift.io"
HOSTED_CLUSTER_VERSION = "v1beta1"
HOSTED_CLUSTER_PLURAL = "hostedclusters"

KUBECONFIG_SECRET_SUFFIX = "-admin-kubeconfig"
KUBECONFIG_SECRET_KEY = "kubeconfig"

# The cluster the operator runs in
LOCAL_CLUSTER_NAME = "in-cluster-local"
LOCAL_CLUSTER_SERVER = "https://kubernetes.default.svc"

# Identity objects provisioned on every bootstrapped cluster
IDENTITY_NAME = "hyper-ops-admin"
IDENTITY_NAMESPACE = "kube-system"
IDENTITY_CLUSTER_ROLE = "cluster-admin"

SERVICE_ACCOUNT_NAME_ANNOTATION = "kubernetes.io/service-account.name"
SERVICE_ACCOUNT_TOKEN_TYPE = "kubernetes.io/service-account-token"
TOKEN_KEY = "token"
CA_CERT_KEY = "ca.crt"
