"""
prd questions show / prd answer - Review and answer clarifying questions.
"""

from prdflow import orchestrator
from prdflow.lib.constants import EXIT_OK
from prdflow.workflow.state_machine import get_state


def cmd_questions_show(args, project_config) -> int:
    doc = orchestrator.load_answers(project_config, args.feature)

    print(f"Clarifying questions: {doc.feature}")
    print(f"Request: {doc.request}")
    print("-" * 60)
    for q in doc.questions:
        print(f"{q.id}. {q.text}")
        for opt in q.options:
            marker = "*" if opt.letter == q.recommended else " "
            print(f"   {marker} {opt.letter}) {opt.text}")
        if q.is_answered:
            print(f"   Answer: {q.answer_content() or q.answer}")
        else:
            print(f"   Recommended: {q.recommended} - {q.rationale}")
        print()

    if doc.locked:
        print("All questions answered.")
    else:
        print(f"{len(doc.pending)} pending. Answer with: prd answer {doc.feature} <question> <choice>")
    return EXIT_OK


def cmd_answer(args, project_config) -> int:
    choice = " ".join(args.choice)
    question = orchestrator.answer(project_config, args.feature, args.question, choice)
    print(f"{question.id}: {question.answer_content() or question.answer}")

    doc = orchestrator.load_answers(project_config, args.feature)
    if doc.locked:
        state = get_state(orchestrator.feature_dir(project_config, args.feature))
        print()
        print("All questions answered; answers are now locked.")
        print(f"Next: {orchestrator.next_step(args.feature, state)}")
    else:
        print(f"{len(doc.pending)} question(s) remaining: {', '.join(q.id for q in doc.pending)}")
    return EXIT_OK
