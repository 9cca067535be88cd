import json
import re
from typing import Any, Iterable

TRANSCRIPTION_PROMPT = """Trascrivi accuratamente l'audio in italiano.
Mantieni la punteggiatura corretta e i paragrafi dove necessario.
Se ci sono termini tecnici di edilizia/architettura, usali correttamente.
Restituisci SOLO il testo trascritto, nient'altro."""

REPORT_GENERATION_PROMPT = """<role>
Sei un architetto esperto in redazione di relazioni tecniche di cantiere.
</role>

<task>
Genera una relazione tecnica HTML professionale basata sulla trascrizione del sopralluogo vocale.
</task>

<input_data>
- Progetto: {project_title}
- Titolo Relazione: {report_title}
- Data: {date}
- Aree ispezionate: {areas}
- Stile di scrittura: {writing_style}
- Trascrizione vocale:
{transcription}
</input_data>

<output_requirements>
Genera un documento HTML completo con:
1. Struttura: DOCTYPE html con lang="it", CSS variables, stile professionale
2. Contenuto: Header, Oggetto del Sopralluogo, Sezioni per area, Osservazioni, Conclusioni, Firma
3. Stile: Font professionale, colori sobri, boxes con bordo
4. Placeholder per foto per ogni area
</output_requirements>

<rules>
- Scrivi in italiano professionale
- Espandi i concetti dalla trascrizione
- NO markdown, solo HTML valido
- Inizia con <!DOCTYPE html>
</rules>"""

REFINE_PROMPT = """<role>
Sei un assistente tecnico. MODIFICA un documento HTML esistente secondo le istruzioni.
</role>

<critical_rules>
1. NON INVENTARE INFORMAZIONI
2. PRESERVA IL CONTENUTO non richiesto
3. MODIFICHE MINIME
4. MANTIENI STRUTTURA HTML/CSS
5. Se la richiesta è ambigua rispondi con "CLARIFICATION:" seguito dalla domanda
</critical_rules>

<current_document>
{current_html}
</current_document>

<user_request>
{user_message}
</user_request>

Restituisci SOLO l'HTML modificato, senza spiegazioni."""

PDF_TEMPLATE_PROMPT = """<role>
Sei un esperto front-end developer specializzato in conversione PDF-to-HTML.
</role>

<objective>
Crea un template HTML5 professionale riutilizzabile.
</objective>

<requirements>
1. CSS Variables per colori in :root
2. Placeholder: {{title}}, {{date}}, {{content}}
3. Media query per stampa
4. NO markdown, solo HTML
</requirements>

<critical_output_rules>
RESTITUISCI SOLO IL CODICE HTML.
- NESSUN testo introduttivo
- Inizia con <!DOCTYPE html>
- Termina con </html>
</critical_output_rules>"""

CLARIFICATION_PREFIX = "CLARIFICATION:"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _fill(template: str, **values: str) -> str:
    # single pass, so braces inside user supplied text are left alone
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def render_report_prompt(
    transcription: str,
    project_title: str | None = None,
    report_title: str | None = None,
    date: str = "",
    areas: Iterable[Any] | None = None,
    writing_style: str = "standard",
) -> str:
    return _fill(
        REPORT_GENERATION_PROMPT,
        project_title=project_title or "Progetto",
        report_title=report_title or "Relazione Tecnica",
        date=date,
        areas=json.dumps(list(areas or []), ensure_ascii=False),
        writing_style=writing_style,
        transcription=transcription,
    )


def render_refine_prompt(current_html: str, user_message: str) -> str:
    return _fill(REFINE_PROMPT, current_html=current_html, user_message=user_message)


def transcription_messages(audio_b64: str, mime_type: str) -> list[dict]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": TRANSCRIPTION_PROMPT},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{audio_b64}"}},
            ],
        }
    ]
