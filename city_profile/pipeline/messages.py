"""pt-BR texts shown by front-ends for progress and errors."""

from city_profile.models.pipeline import ErrorKind, Stage

STATUS_MESSAGES = {
    Stage.permission: "Verificando permissões...",
    Stage.coordinates: "Obtendo localização...",
    Stage.geocode: "Buscando CEP...",
    Stage.postal_resolve: "Buscando código IBGE...",
    Stage.population: "Buscando dados da cidade...",
    Stage.name_ranking: "Buscando ranking de nomes...",
}
READY_MESSAGE = "Dados da localidade carregados."

_NOT_FOUND = {
    Stage.geocode: "Não foi possível determinar um CEP válido.",
    Stage.postal_resolve: "Não foi possível obter o código IBGE.",
    Stage.population: "Não foi possível obter os dados de população para este IBGE.",
    Stage.name_ranking: "Nenhum ranking de nomes encontrado para esta localidade.",
}

_CALL_FAILED = {
    Stage.geocode: "Erro ao buscar o CEP da sua localização.",
    Stage.postal_resolve: "Erro ao buscar dados de localidade.",
    Stage.population: "Erro ao buscar dados de população.",
    Stage.name_ranking: "Falha ao carregar o ranking de nomes.",
}

UNKNOWN_ERROR = "Ocorreu um erro desconhecido."


def error_message(kind: ErrorKind, stage: Stage) -> str:
    """Return the localized message for an error at a given stage."""
    if kind is ErrorKind.permission_denied:
        return "Permissão de localização negada."
    if kind is ErrorKind.location_unavailable:
        return "Não foi possível obter a localização. Verifique o GPS."
    if kind is ErrorKind.not_found:
        return _NOT_FOUND.get(stage, UNKNOWN_ERROR)
    return _CALL_FAILED.get(stage, UNKNOWN_ERROR)
