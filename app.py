"""
Point d'entrée Streamlit.

Conserve `streamlit run app.py` tout en gardant le code UI dans `trip_planner/`.
"""

from trip_planner.ui.streamlit_app import main


if __name__ == "__main__":
    main()
