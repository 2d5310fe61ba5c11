# controle_piso/relatorios.py
import pandas as pd

from controle_piso.progresso import faixa_eficiencia, percentual_eficiencia

COLUNAS_PROGRESSO = ["ordem_id", "codigo", "produto", "quantidade_total", "processo", "unidades", "eficiencia"]


def resumo_progresso_ordens(linhas):
    """
    Avanço das OPs ativas por processo.
    Entrada: linhas de RepositorioPiso.linhas_progresso_ordens.
    Saída: lista de dicts, uma por OP, com o total produzido e a lista de processos.
    """
    df = pd.DataFrame(linhas, columns=COLUNAS_PROGRESSO)
    if df.empty:
        return []

    df["unidades"] = pd.to_numeric(df["unidades"], errors="coerce").fillna(0).astype(int)
    df["eficiencia"] = pd.to_numeric(df["eficiencia"], errors="coerce")

    resumo = []
    for (ordem_id, codigo), grupo in df.groupby(["ordem_id", "codigo"], sort=False):
        total = int(grupo["quantidade_total"].iloc[0] or 0)
        produto = grupo["produto"].iloc[0]

        por_processo = (
            grupo.dropna(subset=["processo"])
            .groupby("processo", sort=False)
            .agg(unidades=("unidades", "sum"), eficiencia=("eficiencia", "mean"))
            .reset_index()
        )

        processos = []
        for _, p in por_processo.iterrows():
            eficiencia = None if pd.isna(p["eficiencia"]) else round(float(p["eficiencia"]) * 100, 1)
            processos.append({
                "processo": p["processo"],
                "unidades": int(p["unidades"]),
                "progresso_pct": round(int(p["unidades"]) / total * 100, 1) if total > 0 else 0.0,
                "saldo": total - int(p["unidades"]),
                "eficiencia_pct": eficiencia,
            })

        resumo.append({
            "ordem_id": ordem_id.item() if hasattr(ordem_id, "item") else ordem_id,
            "codigo": codigo,
            "produto": None if pd.isna(produto) else produto,
            "quantidade_total": total,
            "unidades_produzidas": int(grupo["unidades"].sum()),
            "processos": processos,
        })
    return resumo


def tabela_producao(linhas):
    """Linhas de RepositorioPiso.linhas_producao com avanço, saldo e faixa de eficiência."""
    tabela = []
    for linha in linhas:
        total = int(linha.get("quantidade_total") or 0)
        unidades = int(linha.get("unidades") or 0)
        razao = linha.get("eficiencia")
        tabela.append({
            **{k: v for k, v in linha.items() if k != "eficiencia"},
            "progresso_pct": round(unidades / total * 100, 1) if total > 0 else 0.0,
            "saldo": total - unidades,
            "eficiencia_pct": percentual_eficiencia(razao),
            "eficiencia_faixa": faixa_eficiencia(razao).value,
        })
    return tabela
